"""API 엔드포인트 패키지 - export only."""

from .routes import health_router, search_router, get_cache_adapter, get_orchestrator

__all__ = ["health_router", "search_router", "get_cache_adapter", "get_orchestrator"]
