"""Additive build duration model and the fallback progress heuristic."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from homelab_iso.builds.models import BuildConfig
from homelab_iso.catalog import Catalog

BASE_MINUTES = 30
PER_COMPONENT_MINUTES = 2
PER_VARIANT_MINUTES = 5
PER_GB_MINUTES = 1
ASSEMBLY_MINUTES = 15

HEURISTIC_CAP = 85

_STAGE_BREAKPOINTS: tuple[tuple[int, str], ...] = (
    (20, "Initializing"),
    (40, "Downloading dependencies"),
    (60, "Installing container images"),
    (80, "Assembling artifact"),
    (90, "Uploading"),
)


def estimate_build_minutes(config: BuildConfig, catalog: Catalog) -> int:
    """Estimate how long a build will take, in whole minutes.

    Args:
        config: Validated build request.
        catalog: Supplies variant sizes.

    Returns:
        Estimated duration, rounded up.
    """
    minutes: float = BASE_MINUTES
    minutes += len(config.components) * PER_COMPONENT_MINUTES
    if config.variants:
        minutes += len(config.variants) * PER_VARIANT_MINUTES
        minutes += (
            sum(catalog.variant_size_gb(v) for v in config.variants) * PER_GB_MINUTES
        )
    minutes += ASSEMBLY_MINUTES
    return math.ceil(minutes)


def estimate_completion(minutes: int, now: datetime | None = None) -> datetime:
    """Return the advisory completion time for an estimate."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now + timedelta(minutes=minutes)


def heuristic_progress(elapsed_seconds: float, estimated_minutes: int) -> int:
    """Time-based progress used while no status blob is available.

    Never exceeds HEURISTIC_CAP, so only a real signal can complete a build.
    """
    if estimated_minutes <= 0:
        return 0
    ratio = max(0.0, elapsed_seconds) / (estimated_minutes * 60)
    return min(HEURISTIC_CAP, int(ratio * 100))


def stage_for_progress(progress: int) -> str:
    """Return the stage label for a heuristic progress value."""
    for upper, label in _STAGE_BREAKPOINTS:
        if progress < upper:
            return label
    return "Finalizing"


__all__ = [
    "HEURISTIC_CAP",
    "estimate_build_minutes",
    "estimate_completion",
    "heuristic_progress",
    "stage_for_progress",
]
