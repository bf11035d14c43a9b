"""SearchOrchestrator / AggregationSession 테스트"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from searchgate.core.exceptions import CacheConnectionException, InvalidQueryException
from searchgate.engine import (
    AggregationSession,
    CacheAdapter,
    EngineBudgeter,
    EngineLimits,
    SearchOrchestrator,
    SessionState,
)
from searchgate.engine.query import Category, Query
from searchgate.engine.result import UnresponsiveReason
from searchgate.services import MemoryCacheService
from tests.fixtures import FakeEngine, make_spec


DOCKER_RESULTS = [
    {"title": "Docker", "url": "https://www.docker.com/", "content": "Container platform"},
    {"title": "Docker Docs", "url": "https://docs.docker.com/"},
    {"title": "Docker (software)", "url": "https://en.wikipedia.org/wiki/Docker_(software)"},
]


@pytest.fixture
def memory_cache():
    return CacheAdapter(MemoryCacheService(default_ttl=60))


def _orchestrator(registry, cache=None, budgeter=None, **kwargs):
    return SearchOrchestrator(
        registry,
        cache=cache,
        budgeter=budgeter or EngineBudgeter(fail_threshold=3, window_sec=60, open_duration_sec=30),
        deadline_grace=0.2,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_partial_failure_returns_healthy_results(registry_factory, memory_cache):
    """A 는 3건 반환, B 는 0.2초 타임아웃 → 결과 3건 + B unresponsive"""
    alpha = FakeEngine(results=DOCKER_RESULTS, suggestions=["docker compose"], delay=0.05)
    beta = FakeEngine(delay=1.0)
    registry = registry_factory(
        (make_spec("alpha", timeout=1.0), alpha),
        (make_spec("beta", timeout=0.2), beta),
    )
    orchestrator = _orchestrator(registry, cache=memory_cache)

    result = await orchestrator.search(Query(text="docker"))

    assert len(result.results) == 3
    assert [r.url for r in result.results] == [item["url"] for item in DOCKER_RESULTS]
    assert all(r.engines == ("alpha",) for r in result.results)
    assert [(u.engine, u.reason) for u in result.unresponsive_engines] == [("beta", UnresponsiveReason.TIMEOUT)]
    assert result.suggestions == ("docker compose",)
    assert orchestrator.budgeter.in_flight("alpha") == 0
    assert orchestrator.budgeter.in_flight("beta") == 0


@pytest.mark.asyncio
async def test_responding_and_unresponsive_are_disjoint(registry_factory):
    registry = registry_factory(
        (make_spec("alpha"), FakeEngine(results=DOCKER_RESULTS[:1])),
        (make_spec("beta"), FakeEngine(results=DOCKER_RESULTS[:2])),
        (make_spec("gamma"), FakeEngine(error=ValueError("bad html"))),
    )
    result = await _orchestrator(registry).search(Query(text="docker"))

    assert result.responding_engines == {"alpha", "beta"}
    assert result.unresponsive_engine_ids == {"gamma"}
    assert not result.responding_engines & result.unresponsive_engine_ids
    top = result.results[0]
    assert top.url == "https://www.docker.com/"
    assert top.engines == ("alpha", "beta")
    assert top.score == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_all_engines_failing_is_not_an_error(registry_factory, memory_cache):
    registry = registry_factory(
        (make_spec("alpha"), FakeEngine(error=RuntimeError("503"))),
        (make_spec("beta"), FakeEngine(error=RuntimeError("parse"))),
    )
    orchestrator = _orchestrator(registry, cache=memory_cache)

    result = await orchestrator.search(Query(text="docker"))

    assert result.results == ()
    assert result.unresponsive_engine_ids == {"alpha", "beta"}
    assert all(u.reason == UnresponsiveReason.ERROR for u in result.unresponsive_engines)
    # 아무 엔진도 응답하지 않은 결과는 캐시하지 않음
    assert await memory_cache.get(Query(text="docker")) is None


@pytest.mark.asyncio
async def test_zero_admitted_engines(registry_factory):
    alpha = FakeEngine(results=DOCKER_RESULTS)
    registry = registry_factory((make_spec("alpha"), alpha))
    budgeter = EngineBudgeter({"alpha": EngineLimits(max_concurrency=1)})
    await budgeter.admit("alpha")  # 다른 세션이 슬롯을 점유 중

    result = await _orchestrator(registry, budgeter=budgeter).search(Query(text="docker"))

    assert result.results == ()
    assert [(u.engine, u.reason) for u in result.unresponsive_engines] == [
        ("alpha", UnresponsiveReason.RATE_LIMITED)
    ]
    assert alpha.calls == []
    assert budgeter.in_flight("alpha") == 1


@pytest.mark.asyncio
async def test_circuit_open_engine_is_skipped(registry_factory):
    broken = FakeEngine(error=RuntimeError("down"))
    registry = registry_factory(
        (make_spec("alpha"), FakeEngine(results=DOCKER_RESULTS[:1])),
        (make_spec("broken"), broken),
    )
    orchestrator = _orchestrator(registry)

    # fail_threshold=3: 4번째 실패에서 회로 개방
    for _ in range(4):
        await orchestrator.search(Query(text="docker"))
    result = await orchestrator.search(Query(text="docker"))

    assert len(broken.calls) == 4
    reasons = {u.engine: u.reason for u in result.unresponsive_engines}
    assert reasons == {"broken": UnresponsiveReason.CIRCUIT_OPEN}
    assert len(result.results) == 1


@pytest.mark.asyncio
async def test_client_abort_is_not_an_engine_failure(registry_factory):
    slow = FakeEngine(results=DOCKER_RESULTS, delay=1.0)
    registry = registry_factory((make_spec("slow", timeout=2.0), slow))
    orchestrator = _orchestrator(registry)

    task = asyncio.create_task(orchestrator.search(Query(text="docker")))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    report = orchestrator.budgeter.snapshot()["slow"]
    assert report["in_flight"] == 0
    assert report["recent_failures"] == 0
    assert report["metrics"]["timeouts"] == 0
    assert slow.in_flight == 0


@pytest.mark.asyncio
async def test_engine_never_started_is_not_charged(registry_factory):
    """전역 슬롯 1개 + 데드라인 0.3초: e2 는 호출되지 못함"""
    engines = [FakeEngine(results=DOCKER_RESULTS[:1], delay=0.2) for _ in range(3)]
    registry = registry_factory(*[(make_spec(f"e{i}", timeout=0.3), e) for i, e in enumerate(engines)])
    orchestrator = SearchOrchestrator(
        registry,
        budgeter=EngineBudgeter(fail_threshold=3),
        global_concurrency=1,
        deadline_grace=0.0,
    )

    result = await orchestrator.search(Query(text="docker"))

    assert result.responding_engines == {"e0"}
    reasons = {u.engine: u.reason for u in result.unresponsive_engines}
    assert reasons == {"e1": UnresponsiveReason.TIMEOUT, "e2": UnresponsiveReason.TIMEOUT}
    assert engines[2].calls == []
    snapshot = orchestrator.budgeter.snapshot()
    assert snapshot["e1"]["recent_failures"] == 1
    assert snapshot["e2"]["recent_failures"] == 0
    assert all(snapshot[name]["in_flight"] == 0 for name in ("e0", "e1", "e2"))


@pytest.mark.asyncio
async def test_cache_hit_skips_dispatch(registry_factory, memory_cache):
    alpha = FakeEngine(results=DOCKER_RESULTS)
    registry = registry_factory((make_spec("alpha"), alpha))
    orchestrator = _orchestrator(registry, cache=memory_cache)

    first = await orchestrator.search(Query(text="docker"))
    second = await orchestrator.search(Query(text="  Docker "))

    assert len(alpha.calls) == 1
    assert second.results == first.results
    assert second.suggestions == first.suggestions


@pytest.mark.asyncio
async def test_cache_failure_is_best_effort(registry_factory):
    service = MagicMock()
    service.get = AsyncMock(side_effect=CacheConnectionException("connection refused"))
    service.set = AsyncMock(side_effect=CacheConnectionException("connection refused"))
    registry = registry_factory((make_spec("alpha"), FakeEngine(results=DOCKER_RESULTS)))

    result = await _orchestrator(registry, cache=CacheAdapter(service)).search(Query(text="docker"))

    assert len(result.results) == 3
    service.get.assert_awaited_once()
    service.set.assert_awaited_once()


@pytest.mark.asyncio
async def test_category_selection(registry_factory):
    general = FakeEngine(results=DOCKER_RESULTS[:1])
    news = FakeEngine(results=DOCKER_RESULTS[1:2])
    registry = registry_factory(
        (make_spec("general"), general),
        (make_spec("news", categories=(Category.NEWS, Category.IT)), news),
    )
    orchestrator = _orchestrator(registry)

    await orchestrator.search(Query(text="docker"))
    assert len(general.calls) == 1 and news.calls == []

    await orchestrator.search(Query(text="docker", categories=frozenset({Category.IT, Category.NEWS})))
    assert len(news.calls) == 1
    assert news.calls[0]["category"] == "news"


@pytest.mark.asyncio
async def test_explicit_engines(registry_factory):
    alpha = FakeEngine(results=DOCKER_RESULTS[:1])
    beta = FakeEngine(results=DOCKER_RESULTS[1:2])
    registry = registry_factory(
        (make_spec("alpha", shortcut="a"), alpha),
        (make_spec("beta", categories=(Category.SCIENCE,)), beta),
    )
    orchestrator = _orchestrator(registry)

    query = orchestrator.parse("!beta docker")
    result = await orchestrator.search(query)

    assert alpha.calls == []
    assert beta.calls[0]["category"] == "science"
    assert result.responding_engines == {"beta"}


@pytest.mark.asyncio
@pytest.mark.parametrize("query", [
    Query(text="docker", engines=frozenset({"nope"})),
    Query(text="docker", engines=frozenset({"disabled"})),
    Query(text="   "),
    Query(text="docker", categories=frozenset()),
    Query(text="docker", page=0),
])
async def test_invalid_query_fails_before_dispatch(registry_factory, memory_cache, query):
    alpha = FakeEngine(results=DOCKER_RESULTS)
    registry = registry_factory(
        (make_spec("alpha"), alpha),
        (make_spec("disabled", enabled=False), FakeEngine()),
    )
    memory_cache.cache_service.get = AsyncMock(return_value=None)

    with pytest.raises(InvalidQueryException):
        await _orchestrator(registry, cache=memory_cache).search(query)

    assert alpha.calls == []
    memory_cache.cache_service.get.assert_not_awaited()


@pytest.mark.asyncio
async def test_budget_report_logged_when_done(registry_factory):
    registry = registry_factory((make_spec("alpha"), FakeEngine(results=DOCKER_RESULTS)))

    with patch("searchgate.engine.orchestrator.logger") as mock_logger:
        await _orchestrator(registry).search(Query(text="docker"))

    messages = [call.args[0] for call in mock_logger.debug.call_args_list]
    report_lines = [m for m in messages if "budget report" in m]
    assert len(report_lines) == 1
    assert "'dispatching'" in report_lines[0]
    assert "'done'" in report_lines[0]


@pytest.mark.asyncio
async def test_session_runs_once(registry_factory):
    registry = registry_factory((make_spec("alpha"), FakeEngine()))
    session = _orchestrator(registry).create_session(Query(text="docker"))
    assert isinstance(session, AggregationSession)

    await session.run()
    assert session.state == SessionState.DONE
    with pytest.raises(RuntimeError):
        await session.run()
