"""FastAPI application factory and main app.

This module creates the FastAPI application with all routers and
the build orchestrator wired into app state.

Web routes are thin proxies to the orchestrator.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from homelab_iso import __version__
from homelab_iso.builds.orchestrator import BuildOrchestrator
from homelab_iso.compute import create_provisioner
from homelab_iso.config import get_settings
from homelab_iso.storage import create_artifact_store
from web.routers import builds, catalog, config, health

logger = logging.getLogger(__name__)


def create_app(orchestrator: BuildOrchestrator | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator, mainly for tests. When None,
            one is created from settings at startup.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the orchestrator on startup and stop it on shutdown."""
        owned = orchestrator is None
        if orchestrator is None:
            settings = get_settings()
            logging.basicConfig(level=settings.log_level)
            instance = BuildOrchestrator(
                create_provisioner(settings),
                create_artifact_store(settings),
                settings=settings,
            )
        else:
            instance = orchestrator
        app.state.orchestrator = instance
        instance.start()
        logger.info("Build orchestrator started")
        try:
            yield
        finally:
            await instance.shutdown()
            if owned:
                await instance.provisioner.aclose()
                await instance.store.aclose()

    application = FastAPI(
        title="Homelab ISO Builder API",
        description="HTTP API for building custom homelab installer ISOs "
        "on ephemeral compute resources",
        version=__version__,
        lifespan=lifespan,
    )

    # Include routers
    application.include_router(health.router, tags=["health"])
    application.include_router(config.router, prefix="/config", tags=["config"])
    application.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
    application.include_router(builds.router, prefix="/builds", tags=["builds"])

    return application


app = create_app()
