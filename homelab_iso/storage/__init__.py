"""Artifact storage shared with remote builds.

This module provides:
- ArtifactStore interface and key validation
- Local directory and HTTP adapters
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homelab_iso.storage.base import ArtifactInfo, ArtifactStore, validate_key
from homelab_iso.storage.http import HttpArtifactStore
from homelab_iso.storage.local import LocalArtifactStore

if TYPE_CHECKING:
    from homelab_iso.config import Settings


def create_artifact_store(settings: Settings) -> ArtifactStore:
    """Create the artifact store configured by settings.

    Raises:
        ValueError: If the HTTP backend is selected without a URL.
    """
    if settings.store_backend == "http":
        if not settings.store_url:
            raise ValueError("HOMELAB_ISO_STORE_URL must be set for the http store")
        return HttpArtifactStore(
            settings.store_url, timeout=settings.request_timeout_seconds
        )
    return LocalArtifactStore(settings.artifacts_dir)


__all__ = [
    "ArtifactInfo",
    "ArtifactStore",
    "HttpArtifactStore",
    "LocalArtifactStore",
    "create_artifact_store",
    "validate_key",
]
