"""테스트 자산 레이어

규칙:
- 네트워크 의존 없음
- 엔진 응답은 dict/list 로만 표현
"""

from .fakes import FakeClock, FakeEngine, make_spec
from .payloads import HTML_RESULTS_PAGE, WIKIPEDIA_RESPONSE

__all__ = [
    "FakeClock",
    "FakeEngine",
    "make_spec",
    "HTML_RESULTS_PAGE",
    "WIKIPEDIA_RESPONSE",
]
