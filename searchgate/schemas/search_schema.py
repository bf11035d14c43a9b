"""Pydantic 스키마 정의 (API 응답 + 캐시 직렬화)"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from searchgate.engine.query import Category, Query
from searchgate.engine.result import (
    AggregationResult,
    ResultRecord,
    UnresponsiveEngine,
    UnresponsiveReason,
)


# ============================================================================
# API 응답
# ============================================================================

class SearchResultItem(BaseModel):
    """검색 결과 1건 (JSON 직렬화 형식)"""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., description="제목")
    url: str = Field(..., description="결과 URL")
    content: str = Field("", description="본문 요약")
    engine: str = Field(..., description="대표 엔진")
    score: float = Field(..., ge=0, description="병합 점수")
    category: str = Field(..., description="카테고리")
    published_date: Optional[datetime] = Field(None, alias="publishedDate", description="게시일")

    @classmethod
    def from_record(cls, record: ResultRecord) -> "SearchResultItem":
        return cls(
            title=record.title,
            url=record.url,
            content=record.snippet,
            engine=record.engine,
            score=record.score,
            category=record.category.value,
            published_date=record.published_date,
        )


class UnresponsiveEngineItem(BaseModel):
    engine: str = Field(..., description="엔진 이름")
    reason: str = Field(..., description="timeout | error | rate_limited | circuit_open")


class SearchResponse(BaseModel):
    """검색 응답"""
    query: str = Field(..., description="업스트림으로 전달된 검색어")
    results: list[SearchResultItem] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    unresponsive_engines: list[UnresponsiveEngineItem] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: AggregationResult) -> "SearchResponse":
        return cls(
            query=result.query.text,
            results=[SearchResultItem.from_record(r) for r in result.results],
            suggestions=list(result.suggestions),
            unresponsive_engines=[
                UnresponsiveEngineItem(engine=u.engine, reason=u.reason.value)
                for u in result.unresponsive_engines
            ],
        )


class ErrorResponse(BaseModel):
    error_code: str = Field(..., description="에러 코드")
    message: str = Field(..., description="에러 메시지")
    details: dict = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """헬스 체크 응답"""
    status: str = Field(..., description="ok")
    timestamp: datetime
    version: str


class EngineStatusItem(BaseModel):
    name: str
    categories: list[str]
    enabled: bool
    shortcut: Optional[str] = None
    weight: float
    timeout: float
    rate_state: Optional[dict] = Field(None, description="in-flight/회로 상태 (호출 이력이 있을 때만)")


# ============================================================================
# 캐시 직렬화
# ============================================================================

class CachedQuery(BaseModel):
    text: str
    categories: list[str]
    engines: Optional[list[str]] = None
    language: Optional[str] = None
    page: int = Field(1, ge=1)

    @classmethod
    def from_query(cls, query: Query) -> "CachedQuery":
        return cls(
            text=query.text,
            categories=[c.value for c in Category.ordered(query.categories)],
            engines=sorted(query.engines) if query.engines is not None else None,
            language=query.language,
            page=query.page,
        )

    def to_query(self) -> Query:
        return Query(
            text=self.text,
            categories=frozenset(Category(c) for c in self.categories),
            engines=frozenset(self.engines) if self.engines is not None else None,
            language=self.language,
            page=self.page,
        )


class CachedRecord(BaseModel):
    title: str
    url: str
    snippet: str = ""
    engine: str
    category: str
    score: float = Field(..., ge=0)
    published_date: Optional[datetime] = None
    engines: list[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: ResultRecord) -> "CachedRecord":
        return cls(
            title=record.title,
            url=record.url,
            snippet=record.snippet,
            engine=record.engine,
            category=record.category.value,
            score=record.score,
            published_date=record.published_date,
            engines=list(record.engines),
        )

    def to_record(self) -> ResultRecord:
        return ResultRecord(
            title=self.title,
            url=self.url,
            snippet=self.snippet,
            engine=self.engine,
            category=Category(self.category),
            score=self.score,
            published_date=self.published_date,
            engines=tuple(self.engines),
        )


class CachedUnresponsive(BaseModel):
    engine: str
    reason: UnresponsiveReason


class CachedAggregation(BaseModel):
    """캐시에 저장되는 AggregationResult 형식"""
    query: CachedQuery
    results: list[CachedRecord] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    unresponsive_engines: list[CachedUnresponsive] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: AggregationResult) -> "CachedAggregation":
        return cls(
            query=CachedQuery.from_query(result.query),
            results=[CachedRecord.from_record(r) for r in result.results],
            suggestions=list(result.suggestions),
            unresponsive_engines=[
                CachedUnresponsive(engine=u.engine, reason=u.reason) for u in result.unresponsive_engines
            ],
        )

    def to_result(self) -> AggregationResult:
        return AggregationResult(
            query=self.query.to_query(),
            results=tuple(r.to_record() for r in self.results),
            suggestions=tuple(self.suggestions),
            unresponsive_engines=tuple(
                UnresponsiveEngine(engine=u.engine, reason=u.reason) for u in self.unresponsive_engines
            ),
        )
