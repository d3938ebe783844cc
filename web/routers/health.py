"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from homelab_iso import __version__
from homelab_iso.builds.orchestrator import BuildOrchestrator
from web.deps import get_orchestrator

router = APIRouter()


@router.get("/health")
def health(
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Health check endpoint.

    Returns:
        Health status with version and number of active builds.
    """
    return {
        "status": "ok",
        "version": __version__,
        "active_builds": orchestrator.active_builds,
    }


@router.get("/")
def root() -> dict[str, str]:
    """Root endpoint.

    Returns:
        API name and version.
    """
    return {"name": "Homelab ISO Builder API", "version": __version__}
