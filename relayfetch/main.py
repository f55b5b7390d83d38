"""FastAPI application entry point with lifespan management.

Startup: load settings, configure logging, build the Fetcher (proxy pool,
HTTP transport, render queue) and mount the routers.
Shutdown: drain the render queue and stop the browser driver.

Run with ``uvicorn relayfetch.main:app --port 8001``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from relayfetch.config.settings import FetcherSettings
from relayfetch.fetcher import Fetcher
from relayfetch.logging_config import configure_logging
from relayfetch.middleware.error_handler import register_error_handlers
from relayfetch.routers.fetch import create_fetch_router
from relayfetch.routers.health import create_health_router

logger = logging.getLogger(__name__)


def create_app(
    settings: FetcherSettings | None = None,
    fetcher: Fetcher | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A prebuilt *fetcher* may be passed in (tests do this); otherwise one is
    built from *settings* during startup and closed on shutdown.
    """
    settings = settings or FetcherSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        logger.info("Starting fetch service on port %d", settings.port)

        active = fetcher or Fetcher.from_settings(settings)
        app.state.fetcher = active
        app.include_router(create_health_router(fetcher=active))
        app.include_router(create_fetch_router(fetcher=active))

        logger.info("Fetch service started")
        yield

        logger.info("Shutting down fetch service…")
        await active.aclose()
        logger.info("Fetch service shut down")

    app = FastAPI(
        title="relayfetch",
        version="0.1.0",
        lifespan=lifespan,
    )
    register_error_handlers(app)
    return app


app = create_app()
