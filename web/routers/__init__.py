"""Router modules for FastAPI web API."""

from web.routers import builds, catalog, config, health

__all__ = ["builds", "catalog", "config", "health"]
