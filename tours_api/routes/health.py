"""
Health check route for the Tours API.

PUBLIC endpoint (no authentication, not rate limited) used by load balancers
and deployment checks. Reports whether MongoDB answers a ping.
"""

from fastapi import APIRouter, Request

from tours_api.schemas.health import HealthResponse
from tours_api.utils.logging import get_logger

logger = get_logger(__name__)

# Mounted at root level in main.py, outside /api/v1
router = APIRouter(tags=["system"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness and database check",
    description="No authentication, not rate limited. Reports whether MongoDB answers a ping.",
    status_code=200,
)
async def health_check(request: Request) -> HealthResponse:
    """
    Always 200 while the process is serving; `database` reflects the ping.

    Example response:
        {
            "status": "ok",
            "database": "ok"
        }
    """
    client = getattr(request.app.state, "mongo_client", None)
    if client is None:
        return HealthResponse(status="ok", database="unavailable")

    try:
        await client.admin.command("ping")
    except Exception as e:
        logger.warning(f"Health check database ping failed: {e}")
        return HealthResponse(status="ok", database="unavailable")

    return HealthResponse(status="ok", database="ok")
