"""
Main entrypoint for the Social Events API.

This module assembles the FastAPI application, sets up logging and
error handling, and includes versioned routers.  ``create_app`` builds
and configures the app, which is then instantiated at module import
time as ``app``::

    uvicorn social_events_api.app.main:app --reload

The application title and version are provided via ``Settings`` from
``core.config``.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.config import settings
from .core.logging_config import setup_logging
from .core.errors import register_exception_handlers
from .api.v1.router import router as v1_router
from .core.db import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Creates the database file if needed and applies pending migrations.
    init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    # Initialise logging before anything else so that imports below can
    # safely log messages.
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(
        title=settings.project_name,
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    app.include_router(v1_router, prefix="/api/v1")
    return app


app = create_app()
