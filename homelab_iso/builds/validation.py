"""Validation of incoming build requests.

Everything a client sends is checked here before a Build exists: field
shapes, list sizes, catalog whitelist membership and the safety of the
user-chosen output name, which ends up in an artifact store key.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote

from homelab_iso.builds.errors import BuildValidationError
from homelab_iso.builds.models import BuildConfig
from homelab_iso.catalog import Catalog
from homelab_iso.config import Settings

ALLOWED_FIELDS = frozenset({"components", "variants", "options", "output_name"})

# camelCase spellings accepted from clients, mapped to their field.
FIELD_ALIASES = {"outputName": "output_name"}

MAX_ITEM_LENGTH = 100
OUTPUT_NAME_MIN_LENGTH = 3
OUTPUT_NAME_MAX_LENGTH = 200

COMPONENT_PATTERN = re.compile(r"^[a-z0-9-]+$")
VARIANT_PATTERN = re.compile(r"^[a-z0-9-]+:[a-z0-9.-]+$")
OUTPUT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
CONSECUTIVE_SPECIALS = re.compile(r"[._-]{3,}")

# Checked against both the raw and the percent-decoded name.
_TRAVERSAL_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\.\."), "parent directory reference"),
    (re.compile(r"[/\\]"), "path separator"),
    (re.compile(r"%2e%2e|%2f|%5c", re.IGNORECASE), "encoded path characters"),
    (re.compile(r"\x00"), "null byte"),
    (re.compile(r"[^\x20-\x7e]"), "non-printable or non-ASCII characters"),
    (re.compile(r"^[A-Za-z]:"), "drive letter"),
    (re.compile(r"^(\\\\|//)"), "UNC path"),
    (re.compile("[․‥…．]"), "full-width or look-alike dots"),
)

_RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)


def _check_name_list(
    value: Any,
    field: str,
    *,
    pattern: re.Pattern[str],
    max_items: int,
    allowed: Catalog,
    required: bool,
) -> tuple[str, ...]:
    if value is None:
        if required:
            raise BuildValidationError(f"{field} is required", field=field)
        return ()
    if not isinstance(value, list):
        raise BuildValidationError(f"{field} must be a list", field=field)
    if required and not value:
        raise BuildValidationError(
            f"{field} must contain at least one item", field=field
        )
    if len(value) > max_items:
        raise BuildValidationError(
            f"Too many {field}: {len(value)} (maximum {max_items})", field=field
        )

    lookup = allowed.has_component if field == "components" else allowed.has_variant
    seen: dict[str, None] = {}
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise BuildValidationError(
                f"{field}[{index}] must be a string", field=field
            )
        name = item.strip()
        if not name:
            raise BuildValidationError(
                f"{field}[{index}] must not be empty", field=field
            )
        if len(name) > MAX_ITEM_LENGTH:
            raise BuildValidationError(
                f"{field}[{index}] is longer than {MAX_ITEM_LENGTH} characters",
                field=field,
            )
        if not pattern.match(name):
            raise BuildValidationError(
                f"Invalid {field} name format: {name!r}", field=field
            )
        if not lookup(name):
            raise BuildValidationError(f"Unknown {field} entry: {name}", field=field)
        seen.setdefault(name, None)
    return tuple(seen)


def _check_options(value: Any, catalog: Catalog) -> dict[str, bool]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise BuildValidationError("options must be an object", field="options")
    options: dict[str, bool] = {}
    for key, flag in value.items():
        if not isinstance(key, str) or not catalog.has_option(key):
            raise BuildValidationError(f"Unknown option: {key}", field="options")
        if not isinstance(flag, bool):
            raise BuildValidationError(
                f"Option {key} must be a boolean", field="options"
            )
        options[key] = flag
    return options


def validate_output_name(value: Any) -> str:
    """Validate a user-chosen artifact base name.

    Args:
        value: Raw value from the request.

    Returns:
        The trimmed, validated name.

    Raises:
        BuildValidationError: If the name is unsafe or malformed.
    """
    if not isinstance(value, str):
        raise BuildValidationError("output_name must be a string", field="output_name")
    name = value.strip()

    try:
        decoded = unquote(name, errors="strict")
    except UnicodeDecodeError:
        raise BuildValidationError(
            "output_name contains invalid percent-encoding", field="output_name"
        ) from None

    for candidate in (name, decoded):
        for pattern, reason in _TRAVERSAL_PATTERNS:
            if pattern.search(candidate):
                raise BuildValidationError(
                    f"output_name contains {reason}", field="output_name"
                )

    if not OUTPUT_NAME_PATTERN.match(name):
        raise BuildValidationError(
            "output_name may only contain letters, digits, '.', '_' and '-'",
            field="output_name",
        )
    if not OUTPUT_NAME_MIN_LENGTH <= len(name) <= OUTPUT_NAME_MAX_LENGTH:
        raise BuildValidationError(
            f"output_name must be {OUTPUT_NAME_MIN_LENGTH}-"
            f"{OUTPUT_NAME_MAX_LENGTH} characters long",
            field="output_name",
        )
    if name[0] in ".-" or name[-1] in ".-":
        raise BuildValidationError(
            "output_name must not start or end with '.' or '-'",
            field="output_name",
        )
    if CONSECUTIVE_SPECIALS.search(name):
        raise BuildValidationError(
            "output_name must not contain 3 or more consecutive special characters",
            field="output_name",
        )
    stem = name.split(".", 1)[0].upper()
    if stem in _RESERVED_NAMES:
        raise BuildValidationError(
            f"output_name uses a reserved name: {stem}", field="output_name"
        )
    return name


def validate_build_request(
    request: Any, catalog: Catalog, settings: Settings
) -> BuildConfig:
    """Validate a raw build request.

    Args:
        request: Decoded JSON body.
        catalog: Whitelist of components, variants and options.
        settings: Provides per-request limits.

    Returns:
        A validated BuildConfig.

    Raises:
        BuildValidationError: On the first problem found.
    """
    if not isinstance(request, Mapping):
        raise BuildValidationError("Request must be an object")

    unknown = sorted(
        str(key)
        for key in request
        if key not in ALLOWED_FIELDS and key not in FIELD_ALIASES
    )
    if unknown:
        raise BuildValidationError(f"Unknown fields: {', '.join(unknown)}")

    normalized = dict(request)
    for alias, name in FIELD_ALIASES.items():
        if alias not in normalized:
            continue
        if name in normalized:
            raise BuildValidationError(
                f"{alias} and {name} are the same field; send only one", field=name
            )
        normalized[name] = normalized.pop(alias)
    request = normalized

    components = _check_name_list(
        request.get("components"),
        "components",
        pattern=COMPONENT_PATTERN,
        max_items=settings.max_components_per_build,
        allowed=catalog,
        required=True,
    )
    variants = _check_name_list(
        request.get("variants"),
        "variants",
        pattern=VARIANT_PATTERN,
        max_items=settings.max_variants_per_build,
        allowed=catalog,
        required=False,
    )
    options = _check_options(request.get("options"), catalog)

    output_name = request.get("output_name")
    if output_name is not None:
        output_name = validate_output_name(output_name)

    return BuildConfig(
        components=components,
        variants=variants,
        options=options,
        output_name=output_name,
    )


__all__ = [
    "ALLOWED_FIELDS",
    "FIELD_ALIASES",
    "validate_build_request",
    "validate_output_name",
]
