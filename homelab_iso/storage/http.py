"""Artifact store reached over plain HTTP object access.

Objects live at ``{base_url}/{key}``; HEAD checks existence, GET reads
and DELETE removes them. This matches bucket endpoints such as the
GCS XML API or an S3-compatible gateway fronted by a signing proxy.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from homelab_iso.builds.errors import ArtifactStoreError, TransientInfrastructureError
from homelab_iso.builds.retry import TRANSIENT_STATUS_CODES
from homelab_iso.storage.base import ArtifactInfo, validate_key

logger = logging.getLogger(__name__)


class HttpArtifactStore:
    """ArtifactStore over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def _request(self, method: str, key: str) -> httpx.Response:
        url = f"/{validate_key(key)}"
        try:
            response = await self._client.request(method, url)
        except httpx.TimeoutException as e:
            raise TransientInfrastructureError(f"{method} {key} timed out: {e}") from e
        except httpx.RequestError as e:
            raise TransientInfrastructureError(f"{method} {key} failed: {e}") from e
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientInfrastructureError(
                f"{method} {key} failed with HTTP {response.status_code}"
            )
        return response

    @staticmethod
    def _check(response: httpx.Response, method: str, key: str) -> None:
        if not response.is_success:
            raise ArtifactStoreError(
                f"{method} {key} failed with HTTP {response.status_code}"
            )

    async def exists(self, key: str) -> bool:
        response = await self._request("HEAD", key)
        if response.status_code == 404:
            return False
        self._check(response, "HEAD", key)
        return True

    async def stat(self, key: str) -> ArtifactInfo | None:
        response = await self._request("HEAD", key)
        if response.status_code == 404:
            return None
        self._check(response, "HEAD", key)
        length = response.headers.get("content-length")
        size = int(length) if length is not None and length.isdigit() else None
        return ArtifactInfo(key=key, location=str(response.url), size_bytes=size)

    async def read_json(self, key: str) -> dict[str, Any] | None:
        response = await self._request("GET", key)
        if response.status_code == 404:
            return None
        self._check(response, "GET", key)
        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise ArtifactStoreError(f"Invalid JSON in {key}: {e}") from e
        if not isinstance(data, dict):
            raise ArtifactStoreError(
                f"Expected a JSON object in {key}, got {type(data).__name__}"
            )
        return data

    async def delete(self, key: str) -> None:
        response = await self._request("DELETE", key)
        if response.status_code == 404:
            return
        self._check(response, "DELETE", key)
        logger.debug("Deleted %s", key)

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["HttpArtifactStore"]
