"""FastAPI web application for the Homelab ISO Builder.

This module provides the HTTP API over the build orchestrator.

All business logic is delegated to core modules in homelab_iso/.
"""

from web.app import app, create_app

__all__ = ["app", "create_app"]
