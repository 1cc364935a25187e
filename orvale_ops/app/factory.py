"""
Application factory for FastAPI.

This module provides the create_app() function that creates and configures
the FastAPI application instance.
"""

from fastapi import FastAPI

from orvale_ops.app.routes import health_router
from orvale_ops.core.config import settings
from orvale_ops.core.lifespan import lifespan


def create_app() -> FastAPI:
    """
    Application factory function.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.api.app_name,
        version=settings.api.app_version,
        description="Background operations for the Orvale helpdesk",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.include_router(health_router)

    return app
