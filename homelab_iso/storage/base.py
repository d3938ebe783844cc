"""Artifact store interface and key validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol

from homelab_iso.builds.errors import ArtifactStoreError

KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*(/[A-Za-z0-9][A-Za-z0-9._-]*)*$")
MAX_KEY_LENGTH = 512


def validate_key(key: str) -> str:
    """Reject keys that could escape the store root.

    Raises:
        ArtifactStoreError: If the key is empty, absolute or traverses.
    """
    if not key or len(key) > MAX_KEY_LENGTH:
        raise ArtifactStoreError(f"Invalid artifact key length: {len(key)}")
    if ".." in key.split("/") or not KEY_PATTERN.match(key):
        raise ArtifactStoreError(f"Invalid artifact key: {key!r}")
    return key


@dataclass(frozen=True)
class ArtifactInfo:
    """Where a stored object can be fetched from, and its size.

    Attributes:
        key: Store key.
        location: Local file path or URL of the object.
        size_bytes: Object size, None when the backend does not report it.
    """

    key: str
    location: str
    size_bytes: int | None = None


class ArtifactStore(Protocol):
    """Durable object store shared with the remote build resource."""

    async def exists(self, key: str) -> bool:
        """Return True if an object is stored under key."""
        ...

    async def stat(self, key: str) -> ArtifactInfo | None:
        """Return location and size of the object under key, or None if absent."""
        ...

    async def read_json(self, key: str) -> dict[str, Any] | None:
        """Return the decoded JSON object under key, or None if absent.

        Raises:
            ArtifactStoreError: If the object is not a JSON object.
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete the object under key. A missing object is not an error."""
        ...

    async def aclose(self) -> None:
        """Release client resources."""
        ...


__all__ = ["ArtifactInfo", "ArtifactStore", "validate_key"]
