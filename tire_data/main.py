"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn tire_data.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import health, measurements, media, reference
from .config.settings import get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. Missing configuration is logged, not
    fatal, so mock-mode development still starts.
    """
    settings = get_settings()

    logger.info(
        "Tire Data API starting",
        extra={
            "version": __version__,
            "mock_mode": {
                "database": settings.database_mock_mode,
                "r2": settings.r2_mock_mode,
                "video_processor": settings.video_processor_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Tire Data API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Called once at startup, or per test with a fresh configuration.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Tire tread data collection.

        ## Workflow

        1. **Ingest a video**: `POST /api/v1/media/ingest`
           - The video is stored and a bounded set of frames is sampled
           - Returns the video URL, device hint and ordered frame URLs

        2. **Save the measurement**: `POST /api/v1/measurements`
           - Tread depths, tire and vehicle details, conditions
           - Attach the URLs from step 1

        ## Authentication

        All `/api/v1` endpoints require an API key in the `X-API-Key` header.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Allowed origins come from CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        media.router,
        prefix="/api/v1/media",
        tags=["Media"],
    )

    app.include_router(
        measurements.router,
        prefix="/api/v1/measurements",
        tags=["Measurements"],
    )

    app.include_router(
        reference.router,
        prefix="/api/v1/reference",
        tags=["Reference"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Tire Data API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Logs the full error server-side and returns a generic message so
        stack traces never reach clients.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "detail": "Internal server error. Please contact support if this persists.",
            }
        )

    logger.info(
        "FastAPI application created",
        extra={"title": settings.api_title, "version": __version__}
    )

    return app


# This is what uvicorn imports
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "tire_data.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
