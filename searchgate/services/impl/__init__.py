"""Service implementations - export only."""

from .cache_service import CacheService
from .memory_cache_service import MemoryCacheService

__all__ = ["CacheService", "MemoryCacheService"]
