"""스트레스 테스트 - 높은 동시성 환경 검증

여러 세션이 같은 엔진을 동시에 호출해도 엔진별 in-flight 상한과 전역 상한이
지켜지고, 초과분은 rate_limited 로 보고되는지 검증합니다.
"""

import asyncio

import pytest

from searchgate.engine import EngineBudgeter, EngineLimits, EngineRegistry, SearchOrchestrator
from searchgate.engine.query import Query
from searchgate.engine.result import UnresponsiveReason
from tests.fixtures import FakeEngine, make_spec


pytestmark = pytest.mark.stress

RESULTS = [{"title": "Docker", "url": "https://www.docker.com/"}]


@pytest.mark.asyncio
async def test_50_sessions_respect_engine_ceiling():
    """동시 50개 세션, 엔진 상한 2"""
    limited = FakeEngine(results=RESULTS, delay=0.05)
    free = FakeEngine(results=RESULTS, delay=0.01)
    registry = EngineRegistry([
        (make_spec("limited", max_concurrency=2), limited),
        (make_spec("free"), free),
    ])
    budgeter = EngineBudgeter({
        "limited": EngineLimits(max_concurrency=2),
        "free": EngineLimits(max_concurrency=100),
    })
    orchestrator = SearchOrchestrator(registry, budgeter=budgeter, deadline_grace=0.5)

    results = await asyncio.gather(*(orchestrator.search(Query(text=f"docker {i}")) for i in range(50)))

    assert limited.max_in_flight <= 2
    assert budgeter.in_flight("limited") == 0
    assert budgeter.in_flight("free") == 0
    assert len(free.calls) == 50
    assert all(len(r.results) == 1 for r in results)

    admitted = sum(1 for r in results if "limited" in r.responding_engines)
    rate_limited = sum(
        1 for r in results
        for u in r.unresponsive_engines
        if u.engine == "limited" and u.reason == UnresponsiveReason.RATE_LIMITED
    )
    assert admitted == len(limited.calls)
    assert admitted + rate_limited == 50
    assert rate_limited > 0


@pytest.mark.asyncio
async def test_global_concurrency_ceiling():
    """엔진 20개 × 세션 10개, 전역 상한 8"""
    active = 0
    peak = 0

    class Tracking(FakeEngine):
        async def issue(self, query, params, timeout):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            try:
                return await super().issue(query, params, timeout)
            finally:
                active -= 1

    registry = EngineRegistry([
        (make_spec(f"e{i}", timeout=5.0), Tracking(results=RESULTS, delay=0.01)) for i in range(20)
    ])
    budgeter = EngineBudgeter(default_limits=EngineLimits(max_concurrency=100))
    orchestrator = SearchOrchestrator(registry, budgeter=budgeter, global_concurrency=8)

    results = await asyncio.gather(*(orchestrator.search(Query(text=f"q{i}")) for i in range(10)))

    assert peak <= 8
    assert all(r.unresponsive_engines == () for r in results)
    assert all(len(r.results) == 1 and len(r.results[0].engines) == 20 for r in results)


@pytest.mark.asyncio
async def test_failing_engine_does_not_slow_healthy_ones():
    """한 엔진이 계속 멈춰도 세션은 엔진 타임아웃 안에 끝남"""
    registry = EngineRegistry([
        (make_spec("healthy", timeout=1.0), FakeEngine(results=RESULTS)),
        (make_spec("stuck", timeout=0.1), FakeEngine(delay=10.0)),
    ])
    budgeter = EngineBudgeter(default_limits=EngineLimits(max_concurrency=100), fail_threshold=100)
    orchestrator = SearchOrchestrator(registry, budgeter=budgeter, deadline_grace=0.1)

    loop = asyncio.get_running_loop()
    started = loop.time()
    results = await asyncio.gather(*(orchestrator.search(Query(text=f"q{i}")) for i in range(20)))
    elapsed = loop.time() - started

    assert elapsed < 2.0
    assert all(r.responding_engines == {"healthy"} for r in results)
