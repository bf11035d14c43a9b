"""전역 테스트 설정

역할:
- 테스트 환경 구성
- 공통 Fake 시계/레지스트리 주입

금지:
- 실제 업스트림 호출 (네트워크 없음)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable

import pytest


# 프로젝트 루트를 경로에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Redis 없이 메모리 캐시로 동작
os.environ.setdefault("REDIS_URL", "")

from searchgate.engine.adapter import EngineRegistry  # noqa: E402
from tests.fixtures import FakeClock  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    """테스트 환경 변수 설정 (세션 전역)"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "INFO"


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry_factory() -> Callable[..., EngineRegistry]:
    """(EngineSpec, FakeEngine) 목록 → EngineRegistry"""

    def _build(*entries) -> EngineRegistry:
        return EngineRegistry(entries)

    return _build
