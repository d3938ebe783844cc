"""Build orchestration module.

This module handles:
- Request validation and duration estimates
- The bounded build registry
- Retrying remote calls
- The build pipeline and its polling loop
- Reconciling builds from durable status blobs
"""

from homelab_iso.builds.models import Build, BuildConfig, BuildSnapshot

__all__ = ["Build", "BuildConfig", "BuildSnapshot"]

# Lazy imports for submodules to avoid circular imports
# Access via homelab_iso.builds.orchestrator, etc.
