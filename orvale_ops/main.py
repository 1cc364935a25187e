"""
Main FastAPI application entry point.
"""

from orvale_ops.app import create_app

# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    from orvale_ops.core.config import settings

    # A single worker: the background schedulers must run exactly once
    uvicorn.run(
        "orvale_ops.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.api.debug,
        workers=1,
        log_level="info",
        timeout_graceful_shutdown=10,
    )
