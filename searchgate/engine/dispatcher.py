"""Dispatcher - Concurrent fan-out to admitted engines

One asyncio task per admitted engine, bounded by a process-wide semaphore. The
per-engine timeout starts once the engine holds a semaphore slot; engines still
queued at the session deadline are answered ``skipped``. Engine failures never
escape ``dispatch``; every admitted engine gets exactly one ``RawEngineResponse``.
"""

import asyncio
from time import monotonic
from typing import Any, Dict, Optional, Sequence, Set, Tuple

from searchgate.core.exceptions import EngineTimeoutException
from searchgate.core.logging import logger

from .adapter import EngineRegistry, EngineSpec
from .query import Category, Query
from .result import EnginePayload, RawEngineResponse


class Dispatcher:
    """엔진 디스패처

    Usage:
        dispatcher = Dispatcher(registry, asyncio.Semaphore(64))
        responses = await dispatcher.dispatch(query, admitted, deadline=3.5)
    """

    def __init__(self, registry: EngineRegistry, semaphore: Optional[asyncio.Semaphore] = None):
        """
        Args:
            registry: 엔진 레지스트리
            semaphore: 전역 동시 호출 상한 (여러 세션이 공유)
        """
        self.registry = registry
        self.semaphore = semaphore

    async def dispatch(
        self,
        query: Query,
        admitted: Sequence[Tuple[EngineSpec, Category]],
        deadline: Optional[float] = None,
    ) -> Dict[str, RawEngineResponse]:
        """허용된 엔진을 동시에 호출

        모든 엔진이 응답하거나 각자 타임아웃되면 반환합니다. 세션 데드라인이
        지나면 아직 진행 중인 엔진은 취소되고 timeout 으로 기록됩니다.

        Args:
            query: 검색 요청
            admitted: (엔진, 카테고리) 목록
            deadline: 세션 데드라인 (초, None 이면 엔진 타임아웃만 적용)

        Returns:
            엔진 이름 → 응답 (admitted 순서)
        """
        if not admitted:
            return {}

        invoked: Set[str] = set()
        tasks: Dict[str, asyncio.Task] = {
            spec.name: asyncio.create_task(
                self._invoke(spec, category, query, invoked), name=f"engine:{spec.name}"
            )
            for spec, category in admitted
        }

        started = monotonic()
        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=deadline)
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        if pending:
            logger.warning(
                f"[DISPATCH] session deadline {deadline:.2f}s reached, "
                f"cancelling {len(pending)} engine(s)"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        responses: Dict[str, RawEngineResponse] = {}
        for name, task in tasks.items():
            if task in pending or task.cancelled():
                if name in invoked:
                    responses[name] = RawEngineResponse.timeout(name, (monotonic() - started) * 1000)
                else:
                    # 전역 슬롯을 얻기 전에 데드라인 도달 → 호출되지 않음
                    responses[name] = RawEngineResponse.skipped(name, "queued past session deadline")
            else:
                responses[name] = task.result()
        return responses

    def _request_params(self, spec: EngineSpec, category: Category, query: Query) -> Dict[str, Any]:
        return {
            "engine": spec.name,
            "category": category.value,
            "pageno": query.page,
            "language": query.language,
        }

    async def _invoke(
        self, spec: EngineSpec, category: Category, query: Query, invoked: Set[str]
    ) -> RawEngineResponse:
        """전역 슬롯 확보 후 엔진 호출 (대기 시간은 엔진 타임아웃에 포함하지 않음)"""
        if self.semaphore is None:
            return await self._call(spec, category, query, invoked)
        async with self.semaphore:
            return await self._call(spec, category, query, invoked)

    async def _call(
        self, spec: EngineSpec, category: Category, query: Query, invoked: Set[str]
    ) -> RawEngineResponse:
        """엔진 1개 호출 (예외를 던지지 않음)"""
        adapter = self.registry.adapter(spec.name)
        params = self._request_params(spec, category, query)
        invoked.add(spec.name)
        started = monotonic()

        try:
            payload = await asyncio.wait_for(adapter.issue(query, params, spec.timeout), timeout=spec.timeout)
        except (asyncio.TimeoutError, EngineTimeoutException):
            elapsed_ms = (monotonic() - started) * 1000
            logger.warning(f"[DISPATCH] {spec.name} timeout after {spec.timeout}s")
            return RawEngineResponse.timeout(spec.name, elapsed_ms)
        except Exception as e:
            elapsed_ms = (monotonic() - started) * 1000
            cause = f"{type(e).__name__}: {e}"
            logger.warning(f"[DISPATCH] {spec.name} failed: {cause}")
            return RawEngineResponse.error(spec.name, cause, elapsed_ms)

        elapsed_ms = (monotonic() - started) * 1000
        if not isinstance(payload, EnginePayload):
            logger.warning(f"[DISPATCH] {spec.name} returned {type(payload).__name__}, expected EnginePayload")
            return RawEngineResponse.error(spec.name, "invalid payload type", elapsed_ms)

        logger.debug(f"[DISPATCH] {spec.name} ok: {len(payload.results)} results in {elapsed_ms:.0f}ms")
        return RawEngineResponse.ok(spec.name, payload, elapsed_ms)
