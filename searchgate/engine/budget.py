"""Budget Manager - Per-session time budget

세션 예산 구조:
- Cache 조회: cache_timeout
- Dispatch: 최대 엔진 타임아웃 + grace (세션 데드라인)
"""

from dataclasses import dataclass
from time import monotonic
from typing import Dict, Iterable, Optional


@dataclass
class BudgetConfig:
    """세션 예산 설정"""

    total_budget: float = 4.0  # 전체 예산 (초)
    cache_timeout: float = 0.5  # Cache 조회
    dispatch_timeout: float = 3.5  # 엔진 디스패치 데드라인
    min_remaining: float = 0.05  # 실행 최소 여유 시간 (초)

    def __post_init__(self):
        """설정 검증"""
        if self.cache_timeout <= 0 or self.dispatch_timeout <= 0:
            raise ValueError("cache_timeout and dispatch_timeout must be positive")
        sum_timeouts = self.cache_timeout + self.dispatch_timeout
        if sum_timeouts > self.total_budget:
            raise ValueError(
                f"Sum of timeouts ({sum_timeouts}s) exceeds total budget ({self.total_budget}s)"
            )

    @classmethod
    def for_engines(
        cls,
        engine_timeouts: Iterable[float],
        grace: float = 0.5,
        cache_timeout: float = 0.5,
    ) -> "BudgetConfig":
        """엔진 타임아웃으로부터 세션 예산 도출

        Args:
            engine_timeouts: 호출 대상 엔진들의 타임아웃 (초)
            grace: 데드라인 여유 (초)
            cache_timeout: 캐시 조회 타임아웃 (초)
        """
        longest = max(engine_timeouts, default=0.0)
        dispatch_timeout = longest + grace if longest > 0 else max(grace, 0.01)
        return cls(
            total_budget=cache_timeout + dispatch_timeout,
            cache_timeout=cache_timeout,
            dispatch_timeout=dispatch_timeout,
        )


class BudgetManager:
    """세션 시간 예산 관리자

    실시간으로 경과 시간을 추적하고 남은 예산을 계산합니다.

    Usage:
        manager = BudgetManager(BudgetConfig.for_engines([2.0, 3.0]))
        manager.start()

        cache_timeout = manager.get_timeout_for("cache")
        manager.checkpoint("cache_miss")

        deadline = manager.get_timeout_for("dispatch")
        report = manager.get_report()
    """

    def __init__(self, config: Optional[BudgetConfig] = None):
        self.config = config or BudgetConfig()
        self.start_time: Optional[float] = None
        self._checkpoints: Dict[str, float] = {}

    def start(self) -> None:
        """예산 측정 시작"""
        self.start_time = monotonic()
        self._checkpoints.clear()

    def checkpoint(self, name: str) -> None:
        """체크포인트 기록

        Args:
            name: 체크포인트 이름 (예: "cache_hit", "dispatched")

        Raises:
            RuntimeError: start()가 호출되지 않은 경우
        """
        if self.start_time is None:
            raise RuntimeError("Budget not started. Call start() first.")
        self._checkpoints[name] = monotonic() - self.start_time

    def elapsed(self) -> float:
        """경과 시간 반환 (초). start() 전에는 0.0"""
        if self.start_time is None:
            return 0.0
        return monotonic() - self.start_time

    def remaining(self) -> float:
        """남은 예산 반환 (초, 음수 없음)"""
        return max(0.0, self.config.total_budget - self.elapsed())

    def is_exhausted(self) -> bool:
        return self.remaining() < self.config.min_remaining

    def get_timeout_for(self, stage: str) -> float:
        """단계별 타임아웃 계산

        남은 예산과 단계별 설정값 중 작은 값을 반환합니다.

        Args:
            stage: 실행 단계 ("cache", "dispatch")
        """
        remaining = self.remaining()

        if stage == "cache":
            return min(self.config.cache_timeout, remaining)
        elif stage == "dispatch":
            return min(self.config.dispatch_timeout, remaining)
        else:
            return remaining

    def get_report(self) -> dict:
        """예산 사용 리포트 생성"""
        return {
            "total_budget": self.config.total_budget,
            "elapsed": self.elapsed(),
            "remaining": self.remaining(),
            "checkpoints": self._checkpoints.copy(),
            "is_exhausted": self.is_exhausted(),
        }
