"""Circuit Breaker + Metrics tracking for upstream engines."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque

from searchgate.core.logging import logger


@dataclass
class CircuitBreakerMetrics:
    """엔진 호출 메트릭 추적."""

    successes: int = 0
    timeouts: int = 0
    errors: int = 0
    opened: int = 0

    def record_success(self) -> None:
        self.successes += 1

    def record_timeout(self) -> None:
        self.timeouts += 1

    def record_error(self) -> None:
        self.errors += 1

    @property
    def total(self) -> int:
        return self.successes + self.timeouts + self.errors

    @property
    def success_rate(self) -> float:
        """성공률 (0.0~1.0)."""
        return self.successes / self.total if self.total > 0 else 0.0

    def as_dict(self) -> dict:
        return {
            "successes": self.successes,
            "timeouts": self.timeouts,
            "errors": self.errors,
            "opened": self.opened,
            "success_rate": round(self.success_rate, 4),
        }

    def __repr__(self) -> str:
        return (
            f"Metrics({self.successes}S/{self.timeouts}T/{self.errors}E="
            f"{self.success_rate:.1%}, opened={self.opened})"
        )


class CircuitBreaker:
    """엔진별 Circuit Breaker (sliding window).

    - 윈도우(window_sec) 안의 실패가 임계값을 초과하면 회로 개방
    - 개방 후 open_duration_sec 가 지나면 자동 복구
    - 성공 시 즉시 회로 닫기 (복구)

    호출자가 엔진별 lock 을 잡은 상태에서 사용합니다 (자체 동기화 없음).
    """

    def __init__(
        self,
        name: str,
        fail_threshold: int = 5,
        window_sec: float = 60.0,
        open_duration_sec: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """초기화.

        Args:
            name: 엔진 이름 (로그용)
            fail_threshold: 회로 개방 임계값 (윈도우 내 실패가 이 값을 넘으면 개방)
            window_sec: 실패 집계 윈도우 (초)
            open_duration_sec: 개방 상태 유지 시간 (초)
            clock: 단조 시계 (테스트에서 교체)
        """
        self.name = name
        self.fail_threshold = fail_threshold
        self.window_sec = window_sec
        self.open_duration_sec = open_duration_sec
        self._clock = clock

        self._failures: Deque[float] = deque()
        self._open_until: float = 0.0
        self.metrics = CircuitBreakerMetrics()

    def _prune(self, now: float) -> None:
        horizon = now - self.window_sec
        while self._failures and self._failures[0] <= horizon:
            self._failures.popleft()

    @property
    def failure_count(self) -> int:
        """윈도우 내 실패 횟수."""
        self._prune(self._clock())
        return len(self._failures)

    def record_success(self) -> None:
        """성공 기록 → 회로 닫기."""
        self._failures.clear()
        self._open_until = 0.0
        self.metrics.record_success()

    def record_failure(self, timed_out: bool = False) -> None:
        """실패 기록 → 임계값 초과 시 회로 개방."""
        if timed_out:
            self.metrics.record_timeout()
        else:
            self.metrics.record_error()

        now = self._clock()
        self._failures.append(now)
        self._prune(now)

        if len(self._failures) > self.fail_threshold and self._open_until <= 0.0:
            self._open_until = now + self.open_duration_sec
            self.metrics.opened += 1
            logger.warning(
                f"[CIRCUIT_BREAKER] {self.name} OPEN (failures={len(self._failures)} > {self.fail_threshold} "
                f"within {self.window_sec}s). Engine skipped for {self.open_duration_sec}s"
            )

    def is_open(self) -> bool:
        """회로가 개방되었는가?"""
        if self._open_until <= 0.0:
            return False

        if self._clock() >= self._open_until:
            # 자동 복구
            self._failures.clear()
            self._open_until = 0.0
            logger.info(f"[CIRCUIT_BREAKER] {self.name} CLOSED (auto-recovery)")
            return False

        return True

    def get_remaining_open_time(self) -> float:
        """회로 개방 남은 시간 (초)."""
        if self._open_until <= 0.0:
            return 0.0
        return max(0.0, self._open_until - self._clock())

    def __repr__(self) -> str:
        status = "OPEN" if self.is_open() else "CLOSED"
        open_time = self.get_remaining_open_time()
        return (
            f"CircuitBreaker({self.name}, {status}, failures={self.failure_count}/{self.fail_threshold}, "
            f"open_time={open_time:.1f}s)"
        )
