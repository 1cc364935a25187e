"""
Application lifespan management.

This package builds, starts and stops the background services for the
FastAPI application.
"""

from .manager import lifespan
from .tasks import BackgroundServices, build_background_services

__all__ = ["lifespan", "BackgroundServices", "build_background_services"]
