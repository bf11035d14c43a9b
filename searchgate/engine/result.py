"""Search Result - Canonical record and response types

Provides the per-engine raw response envelope, the canonical result record and
the per-request aggregation result. All types are immutable once created.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional, Tuple

from .query import Category, Query


class ResponseStatus(str, Enum):
    """엔진 응답 상태"""

    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"
    SKIPPED = "skipped"


class UnresponsiveReason(str, Enum):
    """결과를 내지 못한 엔진의 사유"""

    TIMEOUT = "timeout"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"
    CIRCUIT_OPEN = "circuit_open"


@dataclass(frozen=True)
class EnginePayload:
    """어댑터가 반환하는 원시 페이로드

    Attributes:
        results: 엔진 고유 순서대로의 결과 항목 (title/url/content/publishedDate/score)
        suggestions: 추천 검색어
    """

    results: Tuple[Mapping[str, Any], ...] = ()
    suggestions: Tuple[str, ...] = ()

    @classmethod
    def of(cls, results=None, suggestions=None) -> "EnginePayload":
        return cls(
            results=tuple(results or ()),
            suggestions=tuple(s for s in (suggestions or ()) if isinstance(s, str)),
        )


@dataclass(frozen=True)
class RawEngineResponse:
    """Dispatcher 가 엔진별로 만드는 응답 봉투

    정규화가 끝나면 버려집니다.
    """

    engine: str
    status: ResponseStatus
    payload: Optional[EnginePayload] = None
    cause: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def is_ok(self) -> bool:
        return self.status == ResponseStatus.OK

    @classmethod
    def ok(cls, engine: str, payload: EnginePayload, elapsed_ms: float = 0.0) -> "RawEngineResponse":
        return cls(engine=engine, status=ResponseStatus.OK, payload=payload, elapsed_ms=elapsed_ms)

    @classmethod
    def timeout(cls, engine: str, elapsed_ms: float = 0.0) -> "RawEngineResponse":
        return cls(engine=engine, status=ResponseStatus.TIMEOUT, cause="timeout", elapsed_ms=elapsed_ms)

    @classmethod
    def error(cls, engine: str, cause: str, elapsed_ms: float = 0.0) -> "RawEngineResponse":
        return cls(engine=engine, status=ResponseStatus.ERROR, cause=cause, elapsed_ms=elapsed_ms)

    @classmethod
    def skipped(cls, engine: str, reason: str) -> "RawEngineResponse":
        return cls(engine=engine, status=ResponseStatus.SKIPPED, cause=reason)


@dataclass(frozen=True)
class ResultRecord:
    """정규화된 검색 결과 (생성 이후 불변)

    병합 시에는 새 레코드를 만들며 기존 레코드를 수정하지 않습니다.

    Attributes:
        title: 제목
        url: 결과 URL
        snippet: 본문 요약
        engine: 대표 엔진 (병합 시 엔진 순서상 가장 앞선 엔진)
        category: 카테고리
        score: 점수 (>= 0)
        published_date: 게시일
        engines: 이 결과를 반환한 모든 엔진
    """

    title: str
    url: str
    snippet: str
    engine: str
    category: Category
    score: float
    published_date: Optional[datetime] = None
    engines: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.score < 0:
            raise ValueError(f"score must be >= 0: {self.score}")
        if not self.engines:
            object.__setattr__(self, "engines", (self.engine,))


@dataclass(frozen=True)
class UnresponsiveEngine:
    engine: str
    reason: UnresponsiveReason


@dataclass(frozen=True)
class AggregationResult:
    """요청 1건의 최종 결과 (캐시에 저장될 때도 그대로 복사됨)

    Attributes:
        query: 요청
        results: 점수 내림차순으로 정렬된 결과
        suggestions: 추천 검색어
        unresponsive_engines: 결과를 내지 못한 엔진 (엔진 이름순)
    """

    query: Query
    results: Tuple[ResultRecord, ...] = ()
    suggestions: Tuple[str, ...] = ()
    unresponsive_engines: Tuple[UnresponsiveEngine, ...] = ()

    @property
    def unresponsive_engine_ids(self) -> FrozenSet[str]:
        return frozenset(u.engine for u in self.unresponsive_engines)

    @property
    def responding_engines(self) -> FrozenSet[str]:
        return frozenset(e for r in self.results for e in r.engines)

    @classmethod
    def empty(cls, query: Query, unresponsive=()) -> "AggregationResult":
        return cls(
            query=query,
            unresponsive_engines=tuple(sorted(unresponsive, key=lambda u: u.engine)),
        )
