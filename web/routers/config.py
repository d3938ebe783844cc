"""Configuration endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from homelab_iso.builds.orchestrator import BuildOrchestrator
from web.deps import get_orchestrator

router = APIRouter()


@router.get("")
def get_config(
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Get public configuration.

    Secrets and backend URLs are not exposed.

    Returns:
        Limits and timeouts in effect.
    """
    settings = orchestrator.settings
    return {
        "store_backend": settings.store_backend,
        "max_concurrent_builds": settings.max_concurrent_builds,
        "max_components_per_build": settings.max_components_per_build,
        "max_variants_per_build": settings.max_variants_per_build,
        "poll_interval_seconds": settings.poll_interval_seconds,
        "stalled_threshold_minutes": settings.stalled_threshold_minutes,
        "build_timeout_hours": settings.build_timeout_hours,
        "build_retention_hours": settings.build_retention_hours,
        "auto_cleanup": settings.auto_cleanup,
        "default_output_name": settings.default_output_name,
        "artifact_suffix": settings.artifact_suffix,
    }
