"""Cache Adapter - Best-effort cache access for the aggregation session"""

import asyncio
from typing import Any, Optional

from pydantic import ValidationError

from searchgate.core.exceptions import CacheException
from searchgate.core.logging import logger
from searchgate.utils.hash_utils import generate_cache_key

from .query import Query
from .result import AggregationResult


class CacheAdapter:
    """Cache 서비스 어댑터 (best-effort)

    CacheService(MemoryCacheService) 를 SearchOrchestrator 가 기대하는 인터페이스로
    변환합니다. 캐시 장애는 항상 미스/무시로 강등되며 예외를 던지지 않습니다.
    """

    def __init__(self, cache_service: Any = None, ttl: Optional[int] = None, counter_timeout: float = 0.5):
        """
        Args:
            cache_service: CacheService 또는 MemoryCacheService (없으면 설정에 따라 생성)
            ttl: 결과 캐시 TTL (초, 없으면 서비스 기본값)
            counter_timeout: 공유 카운터 incr/decr 타임아웃 (초)
        """
        if cache_service is None:
            from searchgate.services import create_cache_service

            cache_service = create_cache_service()
        self.cache_service = cache_service
        self.ttl = ttl
        self.counter_timeout = counter_timeout

    async def get(self, query: Query, timeout: float = 0.5) -> Optional[AggregationResult]:
        """캐시 조회

        Args:
            query: 검색 요청 (정규화된 키로 변환)
            timeout: 타임아웃 (초)

        Returns:
            AggregationResult or None: 캐시된 결과 (그대로 반환, 재정렬 없음)
        """
        try:
            from searchgate.schemas.search_schema import CachedAggregation

            key = generate_cache_key(query)
            cached = await asyncio.wait_for(self.cache_service.get(key), timeout=timeout)
            if not cached:
                return None
            return CachedAggregation.model_validate(cached).to_result()

        except asyncio.TimeoutError:
            logger.warning(f"Cache get timeout after {timeout}s")
            return None
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Cache data deserialization failed: {type(e).__name__}: {e}")
            return None
        except CacheException as e:
            logger.warning(f"Cache get failed: {e}")
            return None
        except Exception as e:
            logger.warning(f"Cache get failed: {type(e).__name__}: {e}")
            return None

    async def set(self, query: Query, result: AggregationResult, timeout: float = 0.5) -> bool:
        """캐시 저장

        Returns:
            bool: 저장 성공 여부 (실패는 로깅만 함)
        """
        try:
            from searchgate.schemas.search_schema import CachedAggregation

            key = generate_cache_key(query)
            payload = CachedAggregation.from_result(result).model_dump(mode="json")
            return bool(
                await asyncio.wait_for(self.cache_service.set(key, payload, self.ttl), timeout=timeout)
            )

        except asyncio.TimeoutError:
            logger.warning(f"Cache set timeout after {timeout}s")
        except CacheException as e:
            logger.warning(f"Cache set failed: {e}")
        except Exception as e:
            logger.warning(f"Cache set failed: {type(e).__name__}: {e}")
        return False

    async def incr(self, key: str, ttl: int) -> Optional[int]:
        """공유 카운터 증가 (실패/타임아웃 시 None)"""
        try:
            return await asyncio.wait_for(self.cache_service.incr(key, ttl), timeout=self.counter_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Counter incr timeout after {self.counter_timeout}s")
            return None
        except Exception as e:
            logger.warning(f"Counter incr failed: {type(e).__name__}: {e}")
            return None

    async def decr(self, key: str) -> Optional[int]:
        """공유 카운터 감소 (실패/타임아웃 시 None)"""
        try:
            return await asyncio.wait_for(self.cache_service.decr(key), timeout=self.counter_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Counter decr timeout after {self.counter_timeout}s")
            return None
        except Exception as e:
            logger.warning(f"Counter decr failed: {type(e).__name__}: {e}")
            return None

    async def health_check(self) -> bool:
        try:
            return await self.cache_service.health_check()
        except Exception:
            return False
