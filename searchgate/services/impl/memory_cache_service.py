"""In-process TTL cache - REDIS_URL 미설정 시 사용하는 CacheService 대체 구현"""
import asyncio
import json
import time
from typing import Any, Callable, Dict, Optional, Tuple

from searchgate.core.config import settings
from searchgate.core.logging import logger
from searchgate.core.exceptions import CacheSerializationException


class MemoryCacheService:
    """프로세스 메모리 캐시

    CacheService 와 같은 인터페이스. 값은 JSON 문자열로 저장하므로 꺼낼 때마다
    새 객체가 만들어집니다 (호출자 간 aliasing 없음). 단일 프로세스 전용.
    """

    def __init__(
        self,
        default_ttl: Optional[int] = None,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl or settings.cache_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._store: Dict[str, Tuple[float, str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        logger.info("Using in-process memory cache (REDIS_URL not set)")

    def _live(self, key: str, now: float) -> Optional[str]:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if now >= expires_at:
            del self._store[key]
            return None
        return value

    def _evict(self, now: float) -> None:
        for key in [k for k, (exp, _) in self._store.items() if now >= exp]:
            del self._store[key]
        while len(self._store) >= self.max_entries:
            oldest = min(self._store, key=lambda k: self._store[k][0])
            del self._store[oldest]

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        async with self._lock:
            value = self._live(key, self._clock())
        if value is None:
            return None
        try:
            return json.loads(value)
        except ValueError as e:
            raise CacheSerializationException("deserialize", str(e), details={"key": key})

    async def set(self, key: str, data: dict[str, Any], ttl: Optional[int] = None) -> bool:
        try:
            value = json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise CacheSerializationException("serialize", str(e))
        async with self._lock:
            now = self._clock()
            if key not in self._store:
                self._evict(now)
            self._store[key] = (now + (ttl or self.default_ttl), value)
        return True

    async def incr(self, key: str, ttl: int) -> int:
        async with self._lock:
            now = self._clock()
            count = int(self._live(key, now) or 0) + 1
            self._store[key] = (now + ttl, str(count))
            return count

    async def decr(self, key: str) -> int:
        async with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is None or now >= entry[0]:
                return 0
            count = max(0, int(entry[1]) - 1)
            self._store[key] = (entry[0], str(count))
            return count

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._store.pop(key, None) is not None

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        async with self._lock:
            self._store.clear()
