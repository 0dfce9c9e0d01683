"""
Main entrypoint for the Hackathon Registration API.

This module assembles the FastAPI application, sets up logging and
includes versioned routers.  ``create_app`` builds and configures the
app, which is then instantiated at module import time as ``app``::

    uvicorn hackathon_registration_api.app.main:app --reload

Storage is initialised in the lifespan handler: the configured backend
is created, initialised (with the one‑time JSON fallback outside
managed environments) and wrapped in an ``AppState`` stored on
``app.state.registration``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .core.config import Settings, settings as default_settings
from .core.db import init_storage
from .core.exceptions import DataInconsistencyError, StorageError
from .core.logging_config import setup_logging
from .core.state import AppState
from .api.v1.router import router as v1_router


logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Parameters
    ----------
    settings : Optional[Settings]
        Configuration to use.  Defaults to the module level settings
        read from the environment.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    settings = settings or default_settings
    setup_logging(settings.log_level, settings.log_file or None)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage = await run_in_threadpool(init_storage, settings)
        state = AppState(settings, storage)
        await run_in_threadpool(state.load_settings)
        if settings.auto_reset:
            logger.warning("AUTO_RESET is set; resetting all data on startup")
            await run_in_threadpool(storage.reset_all)
        app.state.registration = state
        logger.info(
            "Started with %s storage, problem statements %s",
            storage.name,
            "released" if state.problems_released else "hidden",
        )
        try:
            yield
        finally:
            await run_in_threadpool(state.storage.close)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug, lifespan=lifespan)

    app.include_router(v1_router, prefix="/api/v1")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        if isinstance(exc, DataInconsistencyError):
            logger.error("Data inconsistency on %s: %s", request.url.path, exc)
            message = "Database inconsistency detected. Please contact the administrator."
        elif exc.retryable:
            logger.warning("Retryable storage failure on %s: %s", request.url.path, exc)
            message = "The service is busy or temporarily unavailable. Please try again."
        else:
            logger.error("Storage failure on %s: %s", request.url.path, exc)
            message = "Storage failure."
        return JSONResponse(
            status_code=503 if exc.retryable else 500,
            content={"error": message, "kind": exc.kind, "retryable": exc.retryable, "details": str(exc)},
        )

    return app


app = create_app()
