"""
Application lifespan manager.

This module provides the lifespan context manager that handles
startup and shutdown events for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orvale_ops.core.config import settings
from orvale_ops.core.database import AsyncSessionLocal, engine
from orvale_ops.core.logging_config import stop_queue_listener
from . import tasks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    await tasks.initialize_logging(settings)
    logger = logging.getLogger("main")

    # Startup
    await tasks.initialize_database(engine)

    services = tasks.build_background_services(AsyncSessionLocal, settings, engine)
    app.state.background_services = services
    await tasks.start_background_services(services, settings)

    yield

    # Shutdown
    logger.info(f"🛑 Shutting down {settings.api.app_name}...")

    await tasks.shutdown_background_services(services)
    await tasks.shutdown_database(engine)

    stop_queue_listener()
