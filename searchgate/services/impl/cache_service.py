"""Redis 캐시 서비스 - 캐싱/카운터 로직만 담당"""
import json
from typing import Any, Optional
from redis.asyncio import Redis

from searchgate.core.config import settings
from searchgate.core.logging import logger
from searchgate.core.exceptions import (
    CacheConnectionException,
    CacheSerializationException,
)


class CacheService:
    """Redis 캐시 관리 서비스

    결과 캐시(get/set)와 레이트 리밋 공유 카운터(incr/decr)를 제공합니다.
    실패 시 CacheException 계열을 던지며, best-effort 처리는 CacheAdapter 몫입니다.
    """

    def __init__(self, redis_url: Optional[str] = None, default_ttl: Optional[int] = None):
        """Redis 클라이언트 초기화 (실제 연결은 첫 명령 또는 connect() 시점)"""
        url = redis_url or settings.redis_url
        self.default_ttl = default_ttl or settings.cache_ttl
        try:
            self.redis_client = Redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2
            )
        except Exception as e:
            logger.error(f"Failed to create Redis client: {e}")
            raise CacheConnectionException(str(e))

    async def connect(self) -> None:
        """연결 확인 (앱 기동 시 호출)"""
        try:
            await self.redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise CacheConnectionException(str(e))

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """
        캐시 조회

        Args:
            key: 캐시 키

        Returns:
            저장된 dict 또는 None
        """
        try:
            cached_data = await self.redis_client.get(key)
        except Exception as e:
            logger.error(f"Cache read error: {e}")
            raise CacheConnectionException(f"read failed: {e}", details={"key": key})

        if not cached_data:
            logger.debug(f"Cache miss for key: {key}")
            return None

        try:
            data = json.loads(cached_data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Failed to deserialize cache: {e}")
            raise CacheSerializationException("deserialize", str(e), details={"key": key})

        if not isinstance(data, dict):
            raise CacheSerializationException("deserialize", "payload is not an object", details={"key": key})

        logger.debug(f"Cache hit for key: {key}")
        return data

    async def set(self, key: str, data: dict[str, Any], ttl: Optional[int] = None) -> bool:
        """
        캐시 저장 (SETEX)

        Args:
            key: 캐시 키
            data: 저장할 데이터
            ttl: TTL (초, 없으면 기본값)

        Returns:
            성공 여부
        """
        try:
            cached_value = json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize cache data: {e}")
            raise CacheSerializationException("serialize", str(e))

        ttl = ttl or self.default_ttl
        try:
            await self.redis_client.setex(key, ttl, cached_value)
        except Exception as e:
            logger.error(f"Cache write error: {e}")
            raise CacheConnectionException(f"write failed: {e}", details={"key": key})

        logger.debug(f"Cache set for key: {key}, TTL: {ttl}s")
        return True

    async def incr(self, key: str, ttl: int) -> int:
        """원자적 증가 + 만료 갱신 (비정상 종료 시 카운터 누수 방지)"""
        try:
            async with self.redis_client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl)
                count, _ = await pipe.execute()
            return int(count)
        except Exception as e:
            logger.error(f"Counter increment error: {e}")
            raise CacheConnectionException(f"incr failed: {e}", details={"key": key})

    async def decr(self, key: str) -> int:
        """원자적 감소 (0 미만으로 내려가면 0으로 보정)"""
        try:
            count = int(await self.redis_client.decr(key))
            if count < 0:
                await self.redis_client.set(key, 0, keepttl=True)
                count = 0
            return count
        except Exception as e:
            logger.error(f"Counter decrement error: {e}")
            raise CacheConnectionException(f"decr failed: {e}", details={"key": key})

    async def delete(self, key: str) -> bool:
        try:
            result = await self.redis_client.delete(key)
            logger.info(f"Cache deleted for key: {key}")
            return result > 0
        except Exception as e:
            logger.error(f"Cache delete error: {e}")
            return False

    async def health_check(self) -> bool:
        """Redis 연결 상태 확인"""
        try:
            return bool(await self.redis_client.ping())
        except Exception:
            return False

    async def close(self) -> None:
        await self.redis_client.aclose()
