"""Deterministic names derived from a build id.

The remote build scripts compute the same names from the build id they
receive, so these functions form part of the wire contract.
"""

import re

ID_PREFIX_LENGTH = 8

# Build ids are UUID4 strings; lookups may also use the 8-char prefix.
BUILD_ID_PATTERN = re.compile(r"^[0-9a-f][0-9a-f-]{7,35}$")


def short_id(build_id: str) -> str:
    """Return the short prefix used in names and log lines."""
    return build_id[:ID_PREFIX_LENGTH]


def is_build_id(value: str) -> bool:
    """Check whether a string looks like a build id or its prefix."""
    return bool(BUILD_ID_PATTERN.match(value))


def status_blob_key(build_id: str) -> str:
    """Return the artifact store key of a build's status blob."""
    return f"build-status-{short_id(build_id)}.json"


def artifact_name(output_name: str, build_id: str, suffix: str = ".iso") -> str:
    """Return the expected artifact name for a build.

    Args:
        output_name: Validated user-chosen name or the configured default.
        build_id: Build id.
        suffix: File extension, may be empty.

    Returns:
        Artifact key in the store, e.g. ``demo-1-3f2a9c1e.iso``.
    """
    return f"{output_name}-{short_id(build_id)}{suffix}"


def resource_name(build_id: str, prefix: str = "iso-build") -> str:
    """Return the compute resource name for a build."""
    return f"{prefix}-{short_id(build_id)}"


__all__ = [
    "BUILD_ID_PATTERN",
    "ID_PREFIX_LENGTH",
    "artifact_name",
    "is_build_id",
    "resource_name",
    "short_id",
    "status_blob_key",
]
