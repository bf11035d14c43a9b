"""서비스 계층 - export only."""

from typing import Union

from searchgate.core.config import settings

from .impl import CacheService, MemoryCacheService


def create_cache_service() -> Union[CacheService, MemoryCacheService]:
    """REDIS_URL 이 있으면 Redis, 없으면 프로세스 메모리 캐시"""
    if settings.redis_url:
        return CacheService(settings.redis_url, settings.cache_ttl)
    return MemoryCacheService(settings.cache_ttl)


__all__ = ["CacheService", "MemoryCacheService", "create_cache_service"]
