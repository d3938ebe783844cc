"""Orchestrator dependency for FastAPI.

The application lifespan creates one BuildOrchestrator and stores it on
``app.state``; route handlers receive it via dependency injection.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from homelab_iso.builds.orchestrator import BuildOrchestrator


def get_orchestrator(request: Request) -> BuildOrchestrator:
    """Get the build orchestrator from app state.

    Args:
        request: FastAPI request object.

    Returns:
        The application's BuildOrchestrator.
    """
    orchestrator: Any = request.app.state.orchestrator
    return orchestrator  # type: ignore[no-any-return]
