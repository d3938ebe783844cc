"""Shared type definitions for homelab_iso.

This module contains enums and dataclasses shared across subpackages
to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum


class BuildStatus(str, Enum):
    """Status of a build."""

    QUEUED = "queued"
    PROVISIONING = "provisioning"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is possible."""
        return self in (BuildStatus.COMPLETE, BuildStatus.FAILED)


ACTIVE_STATUSES = frozenset(
    {BuildStatus.QUEUED, BuildStatus.PROVISIONING, BuildStatus.RUNNING}
)


class ResourceState(str, Enum):
    """Lifecycle state of a compute resource as reported by the provider."""

    PROVISIONING = "PROVISIONING"
    STAGING = "STAGING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    SUSPENDED = "SUSPENDED"
    STOPPED = "STOPPED"
    TERMINATED = "TERMINATED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: object) -> "ResourceState":
        """Map a provider state string to a ResourceState.

        Unrecognized values map to UNKNOWN rather than failing, since
        providers add states over time.
        """
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.UNKNOWN

    @property
    def is_stopped(self) -> bool:
        """Whether the resource has shut itself down."""
        return self in (ResourceState.STOPPED, ResourceState.TERMINATED)


@dataclass(frozen=True)
class ResourceStatus:
    """Observed state of a compute resource."""

    exists: bool
    state: ResourceState = ResourceState.UNKNOWN


__all__ = [
    "ACTIVE_STATUSES",
    "BuildStatus",
    "ResourceState",
    "ResourceStatus",
]
