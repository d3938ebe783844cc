"""Artifact store on a local directory.

Works with any directory the remote build uploads into, for example a
bucket mounted with gcsfuse. Blocking file I/O runs in worker threads.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from homelab_iso.builds.errors import ArtifactStoreError
from homelab_iso.storage.base import ArtifactInfo, validate_key

logger = logging.getLogger(__name__)


class LocalArtifactStore:
    """ArtifactStore rooted at a directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / validate_key(key)

    def _read_json(self, path: Path) -> dict[str, Any] | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ArtifactStoreError(f"Cannot read {path.name}: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ArtifactStoreError(f"Invalid JSON in {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise ArtifactStoreError(
                f"Expected a JSON object in {path.name}, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def _stat(key: str, path: Path) -> ArtifactInfo | None:
        if not path.is_file():
            return None
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return None
        return ArtifactInfo(key=key, location=str(path), size_bytes=size)

    async def exists(self, key: str) -> bool:
        path = self._path(key)
        return await asyncio.to_thread(path.is_file)

    async def stat(self, key: str) -> ArtifactInfo | None:
        path = self._path(key)
        return await asyncio.to_thread(self._stat, key, path)

    async def read_json(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        return await asyncio.to_thread(self._read_json, path)

    async def delete(self, key: str) -> None:
        path = self._path(key)
        await asyncio.to_thread(path.unlink, missing_ok=True)
        logger.debug("Deleted %s", key)

    async def aclose(self) -> None:
        return None


__all__ = ["LocalArtifactStore"]
