"""Server-side whitelist of buildable components, variants and options.

Only names present in the catalog can reach a provisioning payload.
The built-in catalog mirrors the services and models shipped with the
homelab installer; a YAML file can replace it via Settings.catalog_path.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from homelab_iso.config import Settings

logger = logging.getLogger(__name__)

COMPONENT_CATEGORIES = {
    "ai": "AI & Machine Learning",
    "homelab": "Homelab Services",
    "infrastructure": "Infrastructure",
}


class ComponentInfo(BaseModel):
    """A container service that can be baked into the ISO.

    Attributes:
        display: Human-readable name.
        description: Short description.
        category: One of COMPONENT_CATEGORIES.
        size_mb: Approximate image size.
        dependencies: Other components this one needs at runtime.
        required: Always installed by the remote build scripts.
        hidden: Not listed to clients (pulled in as a dependency).
    """

    model_config = ConfigDict(extra="forbid")

    display: str
    description: str = ""
    category: str = "homelab"
    size_mb: int = Field(default=0, ge=0)
    dependencies: list[str] = Field(default_factory=list)
    required: bool = False
    hidden: bool = False

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        """Validate category is a known one."""
        if v not in COMPONENT_CATEGORIES:
            raise ValueError(
                f"category must be one of {sorted(COMPONENT_CATEGORIES)}, got '{v}'"
            )
        return v


class VariantInfo(BaseModel):
    """A model variant (name:tag) preloaded into the ISO."""

    model_config = ConfigDict(extra="forbid")

    display: str
    description: str = ""
    size_gb: float = Field(default=0.0, ge=0)


class Catalog(BaseModel):
    """The full whitelist."""

    model_config = ConfigDict(extra="forbid")

    components: dict[str, ComponentInfo] = Field(default_factory=dict)
    variants: dict[str, VariantInfo] = Field(default_factory=dict)
    options: dict[str, str] = Field(
        default_factory=dict,
        description="Allowed boolean option flags and their descriptions",
    )

    def has_component(self, name: str) -> bool:
        return name in self.components

    def has_variant(self, name: str) -> bool:
        return name in self.variants

    def has_option(self, name: str) -> bool:
        return name in self.options

    def variant_size_gb(self, name: str) -> float:
        variant = self.variants.get(name)
        return variant.size_gb if variant else 0.0

    def visible_components(self) -> dict[str, ComponentInfo]:
        """Return components that should be listed to clients."""
        return {
            name: info for name, info in self.components.items() if not info.hidden
        }


def _component(
    display: str,
    description: str,
    category: str,
    size_mb: int,
    dependencies: list[str] | None = None,
    required: bool = False,
    hidden: bool = False,
) -> ComponentInfo:
    return ComponentInfo(
        display=display,
        description=description,
        category=category,
        size_mb=size_mb,
        dependencies=dependencies or [],
        required=required,
        hidden=hidden,
    )


def default_catalog() -> Catalog:
    """Return the built-in catalog."""
    return Catalog(
        components={
            # AI & Machine Learning
            "ollama": _component(
                "Ollama (LLM Runtime)", "Local LLM runtime with GPU support", "ai", 2048
            ),
            "openwebui": _component(
                "OpenWebUI", "Web interface for Ollama", "ai", 512, ["ollama"]
            ),
            "langflow": _component(
                "LangFlow", "Visual AI workflow builder", "ai", 1536, ["ollama"]
            ),
            "langgraph": _component(
                "LangGraph",
                "Stateful agent workflow engine",
                "ai",
                819,
                ["ollama", "langgraph-redis", "langgraph-db"],
            ),
            "langgraph-redis": _component(
                "LangGraph Redis", "Redis for LangGraph", "infrastructure", 51,
                hidden=True,
            ),
            "langgraph-db": _component(
                "LangGraph Database", "PostgreSQL for LangGraph", "infrastructure", 102,
                hidden=True,
            ),
            "qdrant": _component(
                "Qdrant", "Vector database for embeddings", "ai", 307
            ),
            "n8n": _component(
                "n8n", "Workflow automation platform", "ai", 614, ["ollama"]
            ),
            # Homelab services
            "nextcloud": _component(
                "Nextcloud",
                "File storage & collaboration",
                "homelab",
                1229,
                ["nextcloud-db", "nextcloud-redis"],
            ),
            "nextcloud-db": _component(
                "Nextcloud Database", "PostgreSQL for Nextcloud", "infrastructure", 102,
                hidden=True,
            ),
            "nextcloud-redis": _component(
                "Nextcloud Redis", "Redis for Nextcloud", "infrastructure", 51,
                hidden=True,
            ),
            "plex": _component("Plex", "Media server with transcoding", "homelab", 819),
            "pihole": _component("Pi-hole", "Network-wide ad blocking", "homelab", 205),
            "homarr": _component("Homarr", "Homelab dashboard", "homelab", 154),
            "hoarder": _component("Hoarder", "Bookmark manager", "homelab", 102),
            # Infrastructure
            "nginx": _component(
                "Nginx (Required)", "Reverse proxy with SSL", "infrastructure", 51,
                required=True,
            ),
            "portainer": _component(
                "Portainer",
                "Container management UI",
                "infrastructure",
                307,
                ["docker-socket-proxy"],
            ),
            "docker-socket-proxy": _component(
                "Docker Socket Proxy",
                "Security layer for Docker API",
                "infrastructure",
                51,
                hidden=True,
            ),
        },
        variants={
            "qwen3:8b": VariantInfo(
                display="Qwen3 8B",
                description="Fast general-purpose model (8B parameters)",
                size_gb=4.7,
            ),
            "qwen3-coder:30b": VariantInfo(
                display="Qwen3 Coder 30B",
                description="Code-specialized model (30B parameters)",
                size_gb=17.0,
            ),
            "qwen3-vl:8b": VariantInfo(
                display="Qwen3 VL 8B",
                description="Vision-language multimodal model",
                size_gb=5.5,
            ),
            "gpt-oss:20b": VariantInfo(
                display="GPT-OSS 20B",
                description="Open-source GPT-style model (20B parameters)",
                size_gb=12.0,
            ),
        },
        options={
            "gpu_enabled": "Install NVIDIA drivers and the container toolkit",
        },
    )


def load_catalog(path: Path) -> Catalog:
    """Load and validate a catalog from a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Validated Catalog instance.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If data does not match the schema.
        ValueError: If YAML content is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data: Any = yaml.safe_load(f)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return Catalog.model_validate(data)


def get_catalog(settings: Settings) -> Catalog:
    """Return the catalog configured by settings."""
    if settings.catalog_path is None:
        return default_catalog()
    logger.info("Loading catalog from %s", settings.catalog_path)
    return load_catalog(settings.catalog_path)


__all__ = [
    "COMPONENT_CATEGORIES",
    "Catalog",
    "ComponentInfo",
    "VariantInfo",
    "default_catalog",
    "get_catalog",
    "load_catalog",
]
