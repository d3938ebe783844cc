"""Compute provisioner interface and the startup payload it carries."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from homelab_iso.types import ResourceStatus


class ProvisioningPayload(BaseModel):
    """Build configuration handed to a freshly created compute resource.

    The remote build scripts read this as JSON metadata; it is never
    interpolated into a shell command line.
    """

    model_config = ConfigDict(frozen=True)

    build_id: str
    components: list[str]
    variants: list[str] = Field(default_factory=list)
    options: dict[str, bool] = Field(default_factory=dict)
    artifact_name: str
    status_blob_key: str
    auto_shutdown: bool = True


class ComputeProvisioner(Protocol):
    """Creates and tracks ephemeral build machines."""

    async def create(self, job_id: str, payload: ProvisioningPayload) -> str:
        """Create a resource for a build and return its handle.

        Creating a resource that already exists under the build's
        deterministic name returns that resource's handle.
        """
        ...

    async def get_state(self, handle: str) -> ResourceStatus:
        """Return whether the resource exists and its lifecycle state."""
        ...

    async def destroy(self, handle: str) -> None:
        """Delete the resource. A missing resource is not an error."""
        ...

    async def export_logs(self, handle: str, job_id: str) -> str | None:
        """Export the resource's console/build logs.

        Returns:
            Location of the exported logs, or None if nothing was exported.
        """
        ...

    async def aclose(self) -> None:
        """Release client resources."""
        ...


__all__ = ["ComputeProvisioner", "ProvisioningPayload"]
