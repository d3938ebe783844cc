"""Catalog endpoints: what a build request may contain."""

from typing import Any

from fastapi import APIRouter, Depends

from homelab_iso.builds.orchestrator import BuildOrchestrator
from homelab_iso.catalog import COMPONENT_CATEGORIES
from web.deps import get_orchestrator

router = APIRouter()


@router.get("/components")
def list_components(
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """List selectable components grouped with their category names.

    Hidden components (pulled in as dependencies) are omitted.
    """
    components = orchestrator.catalog.visible_components()
    return {
        "categories": COMPONENT_CATEGORIES,
        "components": {
            name: info.model_dump(exclude={"hidden"})
            for name, info in components.items()
        },
    }


@router.get("/variants")
def list_variants(
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """List model variants that can be preloaded."""
    return {
        name: info.model_dump() for name, info in orchestrator.catalog.variants.items()
    }


@router.get("/options")
def list_options(
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, str]:
    """List boolean option flags and their descriptions."""
    return dict(orchestrator.catalog.options)
