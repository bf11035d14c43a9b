"""Search Orchestrator - Aggregation session state machine

Coordinates one request end to end:
1. Init: query validation (the only fatal failure)
2. Cache lookup (hit returns the cached result unchanged)
3. Budgeter admission + concurrent dispatch
4. Normalization and merge
5. Best-effort cache store
"""

import asyncio
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from searchgate.core.config import settings
from searchgate.core.exceptions import InvalidQueryException
from searchgate.core.logging import logger, sanitize_for_log

from .adapter import EngineRegistry, EngineSpec
from .budget import BudgetConfig, BudgetManager
from .cache_adapter import CacheAdapter
from .dispatcher import Dispatcher
from .merger import ResultMerger, merge_suggestions
from .normalizer import normalize
from .query import MAX_QUERY_LENGTH, Category, Query, parse_query
from .rate_limiter import EngineBudgeter, EngineLimits, Outcome
from .result import (
    AggregationResult,
    RawEngineResponse,
    ResponseStatus,
    ResultRecord,
    UnresponsiveEngine,
    UnresponsiveReason,
)


class SessionState(str, Enum):
    """세션 상태"""

    INIT = "init"
    CACHE_CHECK = "cache_check"
    DISPATCHING = "dispatching"
    MERGING = "merging"
    CACHE_STORE = "cache_store"
    DONE = "done"


_OUTCOMES = {
    ResponseStatus.OK: Outcome.SUCCESS,
    ResponseStatus.TIMEOUT: Outcome.TIMEOUT,
    ResponseStatus.ERROR: Outcome.ERROR,
    ResponseStatus.SKIPPED: Outcome.CANCELLED,
}

_UNRESPONSIVE = {
    ResponseStatus.TIMEOUT: UnresponsiveReason.TIMEOUT,
    ResponseStatus.ERROR: UnresponsiveReason.ERROR,
    ResponseStatus.SKIPPED: UnresponsiveReason.TIMEOUT,
}


class AggregationSession:
    """요청 1건의 집계 세션

    SearchOrchestrator 가 요청마다 생성하며, run() 이 끝나면 버려집니다.
    """

    def __init__(
        self,
        query: Query,
        registry: EngineRegistry,
        budgeter: EngineBudgeter,
        dispatcher: Dispatcher,
        merger: ResultMerger,
        cache: Optional[CacheAdapter] = None,
        cache_timeout: float = 0.5,
        deadline_grace: float = 0.5,
    ):
        self.query = query
        self.registry = registry
        self.budgeter = budgeter
        self.dispatcher = dispatcher
        self.merger = merger
        self.cache = cache
        self.cache_timeout = cache_timeout
        self.deadline_grace = deadline_grace

        self.state = SessionState.INIT
        self.budget_manager: Optional[BudgetManager] = None
        self._selected: List[Tuple[EngineSpec, Category]] = []

    def _transition(self, state: SessionState) -> None:
        logger.debug(f"[SESSION] {self.state.value} -> {state.value}")
        self.state = state
        if self.budget_manager is not None:
            self.budget_manager.checkpoint(state.value)

    async def run(self) -> AggregationResult:
        """세션 실행

        Returns:
            AggregationResult: 부분 실패도 정상 결과로 반환

        Raises:
            InvalidQueryException: 검증 실패 (디스패치 없음)
            RuntimeError: 이미 실행된 세션
        """
        if self.state != SessionState.INIT:
            raise RuntimeError(f"Session already run (state={self.state.value})")

        self._validate()
        self._selected = self.registry.select(self.query)
        self.budget_manager = BudgetManager(
            BudgetConfig.for_engines(
                (spec.timeout for spec, _ in self._selected),
                grace=self.deadline_grace,
                cache_timeout=self.cache_timeout,
            )
        )
        self.budget_manager.start()
        logger.info(
            f"Search started: query='{sanitize_for_log(self.query.text)}', "
            f"engines={[spec.name for spec, _ in self._selected]}"
        )

        self._transition(SessionState.CACHE_CHECK)
        cached = await self._try_cache()
        if cached is not None:
            self._transition(SessionState.DONE)
            logger.info(f"Search completed from cache: elapsed={self.budget_manager.elapsed():.3f}s")
            return cached

        self._transition(SessionState.DISPATCHING)
        responses, unresponsive, admitted = await self._dispatch()

        self._transition(SessionState.MERGING)
        result = self._merge(responses, unresponsive, admitted)

        self._transition(SessionState.CACHE_STORE)
        if any(r.is_ok for r in responses.values()):
            await self._save_to_cache(result)
        else:
            logger.debug("Skipping cache store: no engine responded")

        self._transition(SessionState.DONE)
        logger.info(
            f"Search completed: results={len(result.results)}, "
            f"unresponsive={sorted(result.unresponsive_engine_ids)}, "
            f"elapsed={self.budget_manager.elapsed():.3f}s"
        )
        logger.debug(f"[SESSION] budget report: {self.budget_manager.get_report()}")
        return result

    def _validate(self) -> None:
        """Init: 요청 검증 (실패 시 디스패치 없이 종료)"""
        query = self.query
        if not isinstance(query, Query):
            raise InvalidQueryException(f"expected Query, got {type(query).__name__}")
        if not isinstance(query.text, str) or not query.text.strip():
            raise InvalidQueryException("query text must not be empty")
        if len(query.text) > MAX_QUERY_LENGTH:
            raise InvalidQueryException(f"query text longer than {MAX_QUERY_LENGTH} characters")
        if not query.categories:
            raise InvalidQueryException("at least one category is required", field="categories")
        unknown = [c for c in query.categories if not isinstance(c, Category)]
        if unknown:
            raise InvalidQueryException(f"unknown categories: {unknown}", field="categories")
        if query.engines is not None:
            missing = sorted(e for e in query.engines if e not in self.registry)
            if missing:
                raise InvalidQueryException(f"unknown engines: {missing}", field="engines")
        if not isinstance(query.page, int) or isinstance(query.page, bool) or query.page < 1:
            raise InvalidQueryException("page must be a positive integer", field="pageno")

    async def _try_cache(self) -> Optional[AggregationResult]:
        if self.cache is None:
            return None
        cached = await self.cache.get(self.query, timeout=self.budget_manager.get_timeout_for("cache"))
        if cached is None:
            self.budget_manager.checkpoint("cache_miss")
            return None
        self.budget_manager.checkpoint("cache_hit")
        return cached

    async def _dispatch(
        self,
    ) -> Tuple[Dict[str, RawEngineResponse], List[UnresponsiveEngine], List[Tuple[EngineSpec, Category]]]:
        """Budgeter 필터링 후 디스패치 (release 는 항상 수행)

        응답이 없는 엔진(세션이 외부에서 취소됨)은 CANCELLED 로 release 하여
        회로 상태에 반영하지 않습니다.
        """
        admissions = await asyncio.gather(*(self.budgeter.admit(spec.name) for spec, _ in self._selected))

        admitted: List[Tuple[EngineSpec, Category]] = []
        unresponsive: List[UnresponsiveEngine] = []
        for (spec, category), admission in zip(self._selected, admissions):
            if admission.is_admitted:
                admitted.append((spec, category))
            else:
                logger.info(
                    f"[BUDGET] {spec.name} excluded: {admission.reason.value} "
                    f"(retry_after={admission.retry_after:.2f}s)"
                )
                unresponsive.append(UnresponsiveEngine(spec.name, admission.reason))

        responses: Dict[str, RawEngineResponse] = {}
        try:
            responses = await self.dispatcher.dispatch(
                self.query, admitted, deadline=self.budget_manager.get_timeout_for("dispatch")
            )
        finally:
            for spec, _ in admitted:
                response = responses.get(spec.name)
                outcome = _OUTCOMES.get(response.status, Outcome.ERROR) if response else Outcome.CANCELLED
                await self.budgeter.release(spec.name, outcome)

        for spec, _ in admitted:
            response = responses.get(spec.name)
            if response is None:
                unresponsive.append(UnresponsiveEngine(spec.name, UnresponsiveReason.TIMEOUT))
            elif not response.is_ok:
                unresponsive.append(
                    UnresponsiveEngine(spec.name, _UNRESPONSIVE.get(response.status, UnresponsiveReason.ERROR))
                )

        return responses, unresponsive, admitted

    def _merge(
        self,
        responses: Dict[str, RawEngineResponse],
        unresponsive: Sequence[UnresponsiveEngine],
        admitted: Sequence[Tuple[EngineSpec, Category]],
    ) -> AggregationResult:
        admitted_names = [spec.name for spec, _ in admitted]
        grouped: Dict[str, Tuple[ResultRecord, ...]] = {}
        suggestions: Dict[str, Tuple[str, ...]] = {}

        for spec, category in admitted:
            response = responses.get(spec.name)
            if response is None or not response.is_ok:
                continue
            grouped[spec.name] = normalize(spec.name, category, response)
            suggestions[spec.name] = response.payload.suggestions if response.payload else ()

        return AggregationResult(
            query=self.query,
            results=self.merger.merge(grouped, engine_order=admitted_names),
            suggestions=merge_suggestions(suggestions, engine_order=admitted_names),
            unresponsive_engines=tuple(sorted(unresponsive, key=lambda u: u.engine)),
        )

    async def _save_to_cache(self, result: AggregationResult) -> None:
        """결과를 캐시에 저장 (실패해도 요청은 성공)"""
        if self.cache is None:
            return
        stored = await self.cache.set(self.query, result, timeout=self.cache_timeout)
        if not stored:
            logger.warning("Result not cached (cache unavailable)")


class SearchOrchestrator:
    """검색 엔진 오케스트레이터

    레지스트리/예산 관리자/캐시/전역 세마포어를 소유하고, 요청마다
    AggregationSession 을 만들어 실행합니다.
    """

    def __init__(
        self,
        registry: EngineRegistry,
        cache: Optional[CacheAdapter] = None,
        budgeter: Optional[EngineBudgeter] = None,
        merger: Optional[ResultMerger] = None,
        global_concurrency: Optional[int] = None,
        cache_timeout: float = 0.5,
        deadline_grace: Optional[float] = None,
    ):
        """
        Args:
            registry: 엔진 레지스트리
            cache: 캐시 어댑터 (None 이면 캐시 미사용)
            budgeter: 엔진 예산 관리자 (없으면 레지스트리 설정으로 생성)
            merger: 결과 병합기 (없으면 레지스트리 가중치로 생성)
            global_concurrency: 전역 동시 엔진 호출 상한
            cache_timeout: 캐시 조회/저장 타임아웃 (초)
            deadline_grace: 세션 데드라인 여유 (초)
        """
        if registry is None:
            raise ValueError("registry must not be None")

        self.registry = registry
        self.cache = cache
        self.budgeter = budgeter or build_budgeter(registry, counters=cache if settings.shared_rate_counters else None)
        self.merger = merger or ResultMerger(
            weights=registry.weights(),
            agreement_bonus=settings.agreement_bonus,
            default_weight=settings.engine_default_weight,
        )
        self.global_concurrency = global_concurrency or settings.global_concurrency
        self._semaphore: Optional[asyncio.Semaphore] = None
        self.cache_timeout = cache_timeout
        self.deadline_grace = settings.session_deadline_grace if deadline_grace is None else deadline_grace

    def _get_dispatcher(self) -> Dispatcher:
        # 세마포어는 실행 중인 이벤트 루프 안에서 한 번만 생성
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.global_concurrency)
        return Dispatcher(self.registry, self._semaphore)

    def parse(
        self,
        text: Optional[str],
        categories: Union[None, str, Iterable[str]] = None,
        engines: Union[None, str, Iterable[str]] = None,
        language: Optional[str] = None,
        pageno: Union[int, str, None] = 1,
    ) -> Query:
        """원시 파라미터 → Query (엔진 단축어는 레지스트리로 해석)"""
        return parse_query(
            text,
            categories=categories,
            engines=engines,
            language=language,
            pageno=pageno,
            resolve_engine=self.registry.resolve,
        )

    def create_session(self, query: Query) -> AggregationSession:
        return AggregationSession(
            query,
            registry=self.registry,
            budgeter=self.budgeter,
            dispatcher=self._get_dispatcher(),
            merger=self.merger,
            cache=self.cache,
            cache_timeout=self.cache_timeout,
            deadline_grace=self.deadline_grace,
        )

    async def search(self, query: Query) -> AggregationResult:
        """통합 검색 실행

        Args:
            query: 검색 요청

        Returns:
            AggregationResult: 결과 (엔진 실패는 unresponsive_engines 에 기록)

        Raises:
            InvalidQueryException: 요청이 유효하지 않은 경우
        """
        return await self.create_session(query).run()


def build_budgeter(registry: EngineRegistry, counters=None) -> EngineBudgeter:
    """레지스트리 엔진 설정으로 EngineBudgeter 생성"""
    limits = {
        spec.name: EngineLimits(max_concurrency=spec.max_concurrency, min_interval=spec.min_interval)
        for spec in registry
    }
    return EngineBudgeter(
        limits,
        default_limits=EngineLimits(
            max_concurrency=settings.engine_default_max_concurrency,
            min_interval=settings.engine_default_min_interval,
        ),
        fail_threshold=settings.circuit_fail_threshold,
        window_sec=settings.circuit_window_seconds,
        open_duration_sec=settings.circuit_open_seconds,
        counters=counters,
    )
