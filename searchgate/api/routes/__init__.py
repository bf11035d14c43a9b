"""API routes package."""

from .health_routes import router as health_router
from .search_routes import router as search_router, get_cache_adapter, get_orchestrator

__all__ = ["health_router", "search_router", "get_cache_adapter", "get_orchestrator"]
