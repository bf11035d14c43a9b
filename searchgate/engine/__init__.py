"""Engine Layer - Query aggregation core

This module provides the aggregation engine of the gateway:
- SearchOrchestrator / AggregationSession: per-request state machine
- EngineBudgeter: per-engine admission (in-flight cap, spacing, circuit breaker)
- BudgetManager: per-session time budget
- Dispatcher: concurrent fan-out under per-engine timeouts
- normalize / ResultMerger: canonical records, dedupe and ranking
- CacheAdapter: best-effort result cache
"""

from .query import Category, Query, parse_query
from .result import (
    AggregationResult,
    EnginePayload,
    RawEngineResponse,
    ResponseStatus,
    ResultRecord,
    UnresponsiveEngine,
    UnresponsiveReason,
)
from .adapter import EngineAdapter, EngineRegistry, EngineSpec
from .budget import BudgetConfig, BudgetManager
from .circuit_breaker import CircuitBreaker, CircuitBreakerMetrics
from .rate_limiter import Admission, AdmissionStatus, EngineBudgeter, EngineLimits, Outcome
from .dispatcher import Dispatcher
from .normalizer import normalize, position_score
from .merger import ResultMerger, merge_suggestions
from .cache_adapter import CacheAdapter
from .orchestrator import AggregationSession, SearchOrchestrator, SessionState, build_budgeter

__all__ = [
    "SearchOrchestrator",
    "AggregationSession",
    "SessionState",
    "build_budgeter",
    "Query",
    "Category",
    "parse_query",
    "AggregationResult",
    "EnginePayload",
    "RawEngineResponse",
    "ResponseStatus",
    "ResultRecord",
    "UnresponsiveEngine",
    "UnresponsiveReason",
    "EngineAdapter",
    "EngineRegistry",
    "EngineSpec",
    "BudgetConfig",
    "BudgetManager",
    "CircuitBreaker",
    "CircuitBreakerMetrics",
    "Admission",
    "AdmissionStatus",
    "EngineBudgeter",
    "EngineLimits",
    "Outcome",
    "Dispatcher",
    "normalize",
    "position_score",
    "ResultMerger",
    "merge_suggestions",
    "CacheAdapter",
]
