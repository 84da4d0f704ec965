"""FastAPI application factory for the PharOS backend."""

import logging
from typing import Optional

from fastapi import FastAPI

from src.api.routes import auth, competitors, health, skus, workspaces
from src.middleware.rate_limit import FixedWindowRateLimiter, build_rate_limiter
from src.platform.errors import register_error_handlers
from src.platform.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app(rate_limiter: Optional[FixedWindowRateLimiter] = None) -> FastAPI:
    """
    Build the application.

    Args:
        rate_limiter: Limiter to install on ``app.state``; defaults to one
            built from RATE_LIMIT_BACKEND / REDIS_URL.
    """
    configure_logging()

    app = FastAPI(title="PharOS API", version="0.1.0")
    app.state.rate_limiter = rate_limiter or build_rate_limiter()

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(skus.router)
    app.include_router(competitors.router)
    app.include_router(workspaces.router)

    logger.info(
        "Application created",
        extra={"rate_limit_store": type(app.state.rate_limiter.store).__name__},
    )
    return app


app = create_app()
