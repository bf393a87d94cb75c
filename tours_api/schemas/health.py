"""
Health check endpoint schemas.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"status": "ok", "database": "ok"}}
    )

    status: str = Field(
        default="ok",
        description="Process status; \"ok\" whenever the API answers",
        examples=["ok"],
    )
    database: Literal["ok", "unavailable"] = Field(
        ...,
        description="Whether MongoDB answered a ping",
    )
