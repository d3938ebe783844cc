"""Compute provisioning for remote builds.

This module provides:
- ComputeProvisioner interface and ProvisioningPayload
- HTTP adapter for a compute gateway
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homelab_iso.compute.base import ComputeProvisioner, ProvisioningPayload
from homelab_iso.compute.http import HttpComputeProvisioner

if TYPE_CHECKING:
    from homelab_iso.config import Settings


def create_provisioner(settings: Settings) -> ComputeProvisioner:
    """Create the provisioner configured by settings.

    Raises:
        ValueError: If no provisioner URL is configured.
    """
    if not settings.provisioner_url:
        raise ValueError(
            "HOMELAB_ISO_PROVISIONER_URL must be set to run builds"
        )
    token = (
        settings.provisioner_token.get_secret_value()
        if settings.provisioner_token
        else None
    )
    return HttpComputeProvisioner(
        settings.provisioner_url,
        token=token,
        timeout=settings.request_timeout_seconds,
        name_prefix=settings.resource_name_prefix,
    )


__all__ = [
    "ComputeProvisioner",
    "HttpComputeProvisioner",
    "ProvisioningPayload",
    "create_provisioner",
]
