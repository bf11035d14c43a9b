"""Engine Budgeter - Per-engine admission control

Tracks per-engine rate state shared by every concurrent session:
- in-flight cap (max concurrent requests per engine)
- minimum spacing between consecutive invocations
- circuit breaker over a sliding failure window

Each engine owns one ``RateState`` cell guarded by its own ``asyncio.Lock``;
``admit``/``release`` are the only mutation paths and never raise.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Protocol

from searchgate.core.logging import logger
from searchgate.utils.hash_utils import generate_rate_key

from .circuit_breaker import CircuitBreaker
from .result import UnresponsiveReason


class Outcome(str, Enum):
    """엔진 호출 결과 (release 입력)"""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"
    # 호출이 시작되지 않았거나 세션이 외부에서 취소됨 (회로 상태 불변)
    CANCELLED = "cancelled"


class AdmissionStatus(str, Enum):
    ADMITTED = "admitted"
    DEFERRED = "deferred"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Admission:
    """admit() 결과

    Attributes:
        engine: 엔진 이름
        status: 허용/연기/거절
        retry_after: 연기 시 재시도 가능 시점까지 남은 시간 (초)
        reason: 허용되지 않은 경우 unresponsive 사유
    """

    engine: str
    status: AdmissionStatus
    retry_after: float = 0.0
    reason: Optional[UnresponsiveReason] = None

    @property
    def is_admitted(self) -> bool:
        return self.status == AdmissionStatus.ADMITTED

    @classmethod
    def admitted(cls, engine: str) -> "Admission":
        return cls(engine=engine, status=AdmissionStatus.ADMITTED)

    @classmethod
    def deferred(cls, engine: str, retry_after: float) -> "Admission":
        return cls(
            engine=engine,
            status=AdmissionStatus.DEFERRED,
            retry_after=max(0.0, retry_after),
            reason=UnresponsiveReason.RATE_LIMITED,
        )

    @classmethod
    def rejected(cls, engine: str, retry_after: float = 0.0) -> "Admission":
        return cls(
            engine=engine,
            status=AdmissionStatus.REJECTED,
            retry_after=max(0.0, retry_after),
            reason=UnresponsiveReason.CIRCUIT_OPEN,
        )


@dataclass(frozen=True)
class EngineLimits:
    max_concurrency: int = 4
    min_interval: float = 0.0


class SharedCounters(Protocol):
    """프로세스 간 공유 카운터 (CacheAdapter 가 구현)

    실패 시 None 을 반환하며 예외를 던지지 않습니다.
    """

    async def incr(self, key: str, ttl: int) -> Optional[int]:
        ...

    async def decr(self, key: str) -> Optional[int]:
        ...


@dataclass
class RateState:
    """엔진별 가변 상태 (lock 을 잡은 상태에서만 변경)"""

    limits: EngineLimits
    breaker: CircuitBreaker
    in_flight: int = 0
    shared_claims: int = 0
    last_invocation: Optional[float] = None
    admitted: int = 0
    deferred: int = 0
    rejected: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class EngineBudgeter:
    """엔진별 예산 관리자

    Usage:
        budgeter = EngineBudgeter({"wikipedia": EngineLimits(max_concurrency=2)})

        admission = await budgeter.admit("wikipedia")
        if admission.is_admitted:
            try:
                ...  # 엔진 호출
            finally:
                await budgeter.release("wikipedia", Outcome.SUCCESS)
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, EngineLimits]] = None,
        default_limits: Optional[EngineLimits] = None,
        fail_threshold: int = 5,
        window_sec: float = 60.0,
        open_duration_sec: float = 30.0,
        counters: Optional[SharedCounters] = None,
        counter_ttl: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            limits: 엔진별 상한
            default_limits: 미등록 엔진용 상한
            fail_threshold: 회로 개방 임계값
            window_sec: 실패 집계 윈도우 (초)
            open_duration_sec: 회로 개방 유지 시간 (초)
            counters: 공유 in-flight 카운터 (None 이면 프로세스 내부만)
            counter_ttl: 공유 카운터 만료 시간 (초, 비정상 종료 시 누수 방지)
            clock: 단조 시계 (테스트에서 교체)
        """
        self._limits: Dict[str, EngineLimits] = dict(limits or {})
        self._default_limits = default_limits or EngineLimits()
        self._fail_threshold = fail_threshold
        self._window_sec = window_sec
        self._open_duration_sec = open_duration_sec
        self._counters = counters
        self._counter_ttl = counter_ttl
        self._clock = clock
        self._states: Dict[str, RateState] = {}

    def _state(self, engine: str) -> RateState:
        # await 가 없으므로 같은 이벤트 루프 안에서 원자적으로 생성됨
        state = self._states.get(engine)
        if state is None:
            state = RateState(
                limits=self._limits.get(engine, self._default_limits),
                breaker=CircuitBreaker(
                    engine,
                    fail_threshold=self._fail_threshold,
                    window_sec=self._window_sec,
                    open_duration_sec=self._open_duration_sec,
                    clock=self._clock,
                ),
            )
            self._states[engine] = state
        return state

    async def admit(self, engine: str) -> Admission:
        """엔진 호출 허용 여부 판단

        거절(circuit_open) → 연기(rate_limited) → 허용 순서로 판단하며,
        허용 시 in-flight 를 증가시킵니다.

        공유 카운터는 lock 밖에서 호출합니다: 로컬 슬롯을 먼저 예약하고,
        공유 상한 초과 시 lock 을 다시 잡아 예약을 되돌립니다.

        Returns:
            Admission: 판단 결과 (예외를 던지지 않음)
        """
        state = self._state(engine)
        async with state.lock:
            if state.breaker.is_open():
                state.rejected += 1
                logger.debug(f"[BUDGET] {engine} rejected: circuit open")
                return Admission.rejected(engine, state.breaker.get_remaining_open_time())

            limits = state.limits
            if state.in_flight >= limits.max_concurrency:
                state.deferred += 1
                logger.debug(f"[BUDGET] {engine} deferred: in_flight={state.in_flight}/{limits.max_concurrency}")
                return Admission.deferred(engine, limits.min_interval)

            now = self._clock()
            if limits.min_interval > 0 and state.last_invocation is not None:
                wait = state.last_invocation + limits.min_interval - now
                if wait > 0:
                    state.deferred += 1
                    logger.debug(f"[BUDGET] {engine} deferred: spacing {wait:.3f}s")
                    return Admission.deferred(engine, wait)

            previous_invocation = state.last_invocation
            state.in_flight += 1
            state.last_invocation = now
            if self._counters is None:
                state.admitted += 1
                return Admission.admitted(engine)

        try:
            claimed = await self._claim_shared(engine, limits)
        except asyncio.CancelledError:
            # 공유 카운터 키는 TTL 로 정리됨
            async with state.lock:
                state.in_flight -= 1
            raise

        async with state.lock:
            if claimed is False:
                state.in_flight -= 1
                if state.last_invocation == now:
                    state.last_invocation = previous_invocation
                state.deferred += 1
                return Admission.deferred(engine, limits.min_interval)
            if claimed:
                state.shared_claims += 1
            state.admitted += 1
            return Admission.admitted(engine)

    async def _claim_shared(self, engine: str, limits: EngineLimits) -> Optional[bool]:
        """공유 카운터로 슬롯 확보 시도

        Returns:
            True: 확보, False: 상한 초과, None: 카운터 사용 불가 (로컬 기준으로 진행)
        """
        key = generate_rate_key(engine)
        count = await self._counters.incr(key, self._counter_ttl)
        if count is None:
            return None
        if count > limits.max_concurrency:
            await self._counters.decr(key)
            logger.debug(f"[BUDGET] {engine} deferred: shared in_flight={count - 1}/{limits.max_concurrency}")
            return False
        return True

    async def release(self, engine: str, outcome: Outcome) -> None:
        """엔진 호출 종료 기록

        in-flight 감소 + 실패 윈도우 갱신. admit 되지 않은 엔진에 대해 호출해도 안전합니다.
        CANCELLED 는 in-flight 만 감소시키고 회로 상태는 건드리지 않습니다.
        """
        state = self._state(engine)
        async with state.lock:
            if state.in_flight > 0:
                state.in_flight -= 1
            else:
                logger.warning(f"[BUDGET] release without admit: engine={engine}")

            if outcome == Outcome.SUCCESS:
                state.breaker.record_success()
            elif outcome == Outcome.CANCELLED:
                logger.debug(f"[BUDGET] {engine} released without outcome (cancelled)")
            else:
                state.breaker.record_failure(timed_out=outcome == Outcome.TIMEOUT)

            release_claim = state.shared_claims > 0
            if release_claim:
                state.shared_claims -= 1

        if release_claim:
            await self._counters.decr(generate_rate_key(engine))

    def in_flight(self, engine: str) -> int:
        state = self._states.get(engine)
        return state.in_flight if state else 0

    def snapshot(self) -> Dict[str, dict]:
        """엔진별 상태 리포트 (/engines 용)"""
        report: Dict[str, dict] = {}
        for engine, state in self._states.items():
            report[engine] = {
                "in_flight": state.in_flight,
                "max_concurrency": state.limits.max_concurrency,
                "circuit_open": state.breaker.is_open(),
                "recent_failures": state.breaker.failure_count,
                "admitted": state.admitted,
                "deferred": state.deferred,
                "rejected": state.rejected,
                "metrics": state.breaker.metrics.as_dict(),
            }
        return report
