"""Homelab ISO Builder - orchestration for custom installer ISO builds.

This package accepts build requests, provisions ephemeral compute
resources that assemble the ISO, tracks their progress through
status blobs in durable storage, and reconciles the outcome.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
