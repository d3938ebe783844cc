"""Compute provisioner backed by a REST compute gateway.

The gateway exposes instances under ``/instances``:

- ``POST /instances`` with ``{"name", "labels", "payload"}`` creates one;
  409 means an instance with that name already exists.
- ``GET /instances/{name}`` returns ``{"name", "status"}``; 404 if gone.
- ``DELETE /instances/{name}`` deletes it; 404 is treated as success.
- ``POST /instances/{name}/logs:export`` returns ``{"path"}``.
"""

from __future__ import annotations

import logging

import httpx

from homelab_iso.builds.errors import (
    ComputeProvisionerError,
    TransientInfrastructureError,
)
from homelab_iso.builds.naming import resource_name, short_id
from homelab_iso.builds.retry import TRANSIENT_STATUS_CODES
from homelab_iso.compute.base import ProvisioningPayload
from homelab_iso.types import ResourceState, ResourceStatus

logger = logging.getLogger(__name__)


def _raise_for_response(response: httpx.Response, action: str) -> None:
    """Map an unsuccessful gateway response to our error types."""
    if response.is_success:
        return
    status = response.status_code
    message = f"{action} failed with HTTP {status}"
    if status in TRANSIENT_STATUS_CODES:
        raise TransientInfrastructureError(message)
    raise ComputeProvisionerError(message, status_code=status)


class HttpComputeProvisioner:
    """ComputeProvisioner talking to the compute gateway over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        name_prefix: str = "iso-build",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the provisioner.

        Args:
            base_url: Gateway base URL.
            token: Optional bearer token.
            timeout: Per-request timeout in seconds.
            name_prefix: Prefix of resource names.
            client: Pre-configured client, mainly for tests.
        """
        headers = {"Authorization": f"Bearer {token}"} if token else None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout
        )
        self.name_prefix = name_prefix

    async def _request(
        self, method: str, url: str, action: str, **kwargs: object
    ) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)  # type: ignore[arg-type]
        except httpx.TimeoutException as e:
            raise TransientInfrastructureError(f"{action} timed out: {e}") from e
        except httpx.RequestError as e:
            raise TransientInfrastructureError(f"{action} failed: {e}") from e

    async def create(self, job_id: str, payload: ProvisioningPayload) -> str:
        name = resource_name(job_id, self.name_prefix)
        body = {
            "name": name,
            "labels": {"purpose": "iso-build", "build-id": short_id(job_id)},
            "payload": payload.model_dump(mode="json"),
        }
        response = await self._request(
            "POST", "/instances", f"Create instance {name}", json=body
        )
        if response.status_code == 409:
            logger.info("Instance %s already exists, reusing it", name)
            return name
        _raise_for_response(response, f"Create instance {name}")
        data = response.json()
        handle = data.get("name") if isinstance(data, dict) else None
        return handle or name

    async def get_state(self, handle: str) -> ResourceStatus:
        response = await self._request(
            "GET", f"/instances/{handle}", f"Get instance {handle}"
        )
        if response.status_code == 404:
            return ResourceStatus(exists=False)
        _raise_for_response(response, f"Get instance {handle}")
        data = response.json()
        state = data.get("status") if isinstance(data, dict) else None
        return ResourceStatus(exists=True, state=ResourceState.parse(state))

    async def destroy(self, handle: str) -> None:
        response = await self._request(
            "DELETE", f"/instances/{handle}", f"Delete instance {handle}"
        )
        if response.status_code == 404:
            logger.debug("Instance %s already deleted", handle)
            return
        _raise_for_response(response, f"Delete instance {handle}")

    async def export_logs(self, handle: str, job_id: str) -> str | None:
        response = await self._request(
            "POST",
            f"/instances/{handle}/logs:export",
            f"Export logs of {handle}",
            json={"build_id": job_id},
        )
        if response.status_code == 404:
            return None
        _raise_for_response(response, f"Export logs of {handle}")
        data = response.json()
        path = data.get("path") if isinstance(data, dict) else None
        return str(path) if path else None

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["HttpComputeProvisioner"]
