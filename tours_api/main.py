"""
FastAPI application entry point for the Tours API.

This module creates the FastAPI app instance, wires middleware and error
handlers, and registers all routers. The MongoDB client lives for the
lifetime of the app (see `lifespan`).
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tours_api.config import settings
from tours_api.db import client as mongo
from tours_api.db.repositories import TourRepository, UserRepository
from tours_api.error_handlers import register_error_handlers
from tours_api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    SlidingWindowRateLimiter,
)
from tours_api.routes.health import router as health_router
from tours_api.routes.tours import router as tours_router
from tours_api.routes.users import router as users_router
from tours_api.utils.logging import configure_logging

configure_logging(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


def _get_cors_origins() -> list[str]:
    """
    Get allowed CORS origins based on environment.

    - ENVIRONMENT=production: Uses CORS_ORIGINS (comma separated). Without it
      no browser origin is allowed.
    - Any other environment: allows all origins for local development.
    """
    if settings.is_production():
        if settings.CORS_ORIGINS:
            logger.info(f"CORS configured for production with {len(settings.CORS_ORIGINS)} allowed origins")
            return settings.CORS_ORIGINS
        logger.warning(
            "CORS_ORIGINS not set in production. "
            "No web origins allowed. Set CORS_ORIGINS for web clients."
        )
        return []

    logger.info(f"CORS configured for {settings.ENVIRONMENT}: allowing all origins")
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Connect to MongoDB and build the repositories on startup; close the
    client on shutdown.

    uvicorn stops accepting connections and drains in-flight requests before
    the shutdown half runs.
    """
    client = mongo.create_client(settings.MONGODB_URI)
    try:
        database = await mongo.connect(client, settings.MONGODB_DATABASE)
        await mongo.ensure_indexes(database)
    except Exception:
        await mongo.close(client)
        raise

    app.state.mongo_client = client
    app.state.tour_repository = TourRepository(database["tours"])
    app.state.user_repository = UserRepository(database["users"])
    logger.info(f"Tours API started ({settings.ENVIRONMENT})")

    yield

    logger.info("Shutting down: closing MongoDB connection")
    app.state.mongo_client = None
    await mongo.close(client)


app = FastAPI(
    title="Natours API",
    description="Tours catalogue and user accounts",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

register_error_handlers(app)

# Middleware added last runs first: CORS, then security headers, then the
# request log, then the rate limiter.
app.state.rate_limiter = SlidingWindowRateLimiter(
    max_requests=settings.RATE_LIMIT_MAX,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter, path_prefix="/api")
if settings.is_development():
    app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router)
app.include_router(tours_router)
app.include_router(users_router)

logger.info("FastAPI app initialized successfully")
