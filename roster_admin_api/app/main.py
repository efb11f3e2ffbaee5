"""
Main entrypoint for the Roster Admin API.

This module assembles the FastAPI application, sets up logging and
includes versioned routers.  The ``create_app`` function builds and
configures the app, which is then instantiated at module import time as
``app``, e.g.::

    uvicorn roster_admin_api.app.main:app --reload
"""

import logging

from fastapi import FastAPI

from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db
from .core.logging_config import setup_logging
from .services.profile_service import roster_store
from .services.roster_store import RosterRefreshError

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Configures logging, mounts the v1 router under ``/api/v1`` and
    registers a startup hook that applies migrations and loads the
    roster.
    """
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)
    app.include_router(v1_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event() -> None:
        init_db()
        if settings.refresh_on_startup:
            try:
                await roster_store.refresh()
            except RosterRefreshError:
                # The roster stays empty; GET /users retries the load.
                logger.error("Initial roster load failed")

    return app


app = create_app()
