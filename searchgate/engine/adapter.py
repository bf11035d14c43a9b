"""Engine Adapter - Pluggable upstream capability and static registry

Adapters are configuration-time plugins; the aggregation core only ever sees
the ``EngineAdapter`` protocol and the ``EngineRegistry`` built at startup.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from searchgate.core.exceptions import ConfigurationException

from .query import Category, Query
from .result import EnginePayload


class EngineAdapter(Protocol):
    """업스트림 검색 엔진 어댑터 인터페이스

    엔진별 구현체가 구현해야 할 프로토콜입니다.
    """

    async def issue(self, query: Query, params: Dict[str, Any], timeout: float) -> EnginePayload:
        """업스트림 검색 실행

        Args:
            query: 검색 요청
            params: 요청별 파라미터 (category, pageno, language)
            timeout: 타임아웃 (초)

        Returns:
            EnginePayload: 원시 결과/추천어

        Raises:
            Exception: 실패 시 (Dispatcher 가 error 로 기록)
        """
        ...


@dataclass(frozen=True)
class EngineSpec:
    """엔진 설정 (기동 시점에 한 번 생성)"""

    name: str
    kind: str
    categories: Tuple[Category, ...] = (Category.GENERAL,)
    timeout: float = 3.0
    weight: float = 1.0
    max_concurrency: int = 4
    min_interval: float = 0.0
    shortcut: Optional[str] = None
    enabled: bool = True
    params: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        if not self.name:
            raise ConfigurationException("engine name must not be empty")
        if not self.categories:
            raise ConfigurationException(f"engine '{self.name}' has no categories")
        if self.timeout <= 0:
            raise ConfigurationException(f"engine '{self.name}' timeout must be positive")
        if self.weight <= 0:
            raise ConfigurationException(f"engine '{self.name}' weight must be positive")
        if self.max_concurrency <= 0:
            raise ConfigurationException(f"engine '{self.name}' max_concurrency must be positive")
        if self.min_interval < 0:
            raise ConfigurationException(f"engine '{self.name}' min_interval must be >= 0")

    def serves(self, category: Category) -> bool:
        return category in self.categories


class EngineRegistry:
    """엔진 레지스트리 (정적, 기동 시점 구성)

    등록 순서가 곧 엔진 순서이며, 병합 시 동점 처리에 사용됩니다.
    비활성화된 엔진은 등록되지만 선택/검증 대상에서 제외됩니다.
    """

    def __init__(self, entries: Iterable[Tuple[EngineSpec, EngineAdapter]] = ()):
        self._specs: Dict[str, EngineSpec] = {}
        self._adapters: Dict[str, EngineAdapter] = {}
        self._shortcuts: Dict[str, str] = {}
        for spec, adapter in entries:
            self.register(spec, adapter)

    def register(self, spec: EngineSpec, adapter: EngineAdapter) -> None:
        if spec.name in self._specs:
            raise ConfigurationException(f"duplicate engine name: {spec.name}")
        if spec.shortcut:
            owner = self._shortcuts.get(spec.shortcut)
            if owner is not None:
                raise ConfigurationException(
                    f"shortcut '{spec.shortcut}' used by both '{owner}' and '{spec.name}'"
                )
            self._shortcuts[spec.shortcut] = spec.name
        self._specs[spec.name] = spec
        self._adapters[spec.name] = adapter

    def __contains__(self, name: object) -> bool:
        spec = self._specs.get(name)  # type: ignore[arg-type]
        return spec is not None and spec.enabled

    def __iter__(self) -> Iterator[EngineSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def names(self) -> List[str]:
        """활성 엔진 이름 (등록 순서)"""
        return [s.name for s in self._specs.values() if s.enabled]

    def get(self, name: str) -> EngineSpec:
        return self._specs[name]

    def adapter(self, name: str) -> EngineAdapter:
        return self._adapters[name]

    def weights(self) -> Dict[str, float]:
        return {name: spec.weight for name, spec in self._specs.items()}

    def resolve(self, token: str) -> Optional[str]:
        """엔진 이름 또는 단축어 → 엔진 이름 (모르면 None)"""
        token = (token or "").strip().lower()
        if token in self:
            return token
        name = self._shortcuts.get(token)
        if name is not None and name in self:
            return name
        return None

    def select(self, query: Query) -> List[Tuple[EngineSpec, Category]]:
        """요청에 대해 호출할 (엔진, 카테고리) 목록

        - 엔진이 명시되면 그 엔진들만 사용
        - 아니면 요청 카테고리 중 하나라도 제공하는 활성 엔진 전부
        - 엔진당 한 번만 호출하며, 카테고리는 요청 카테고리 중 선언 순서상 첫 번째
          (엔진이 요청 카테고리를 하나도 제공하지 않으면 엔진의 첫 카테고리)

        Returns:
            등록 순서대로 정렬된 목록
        """
        requested = Category.ordered(query.categories)
        selected: List[Tuple[EngineSpec, Category]] = []

        for spec in self._specs.values():
            if not spec.enabled:
                continue
            served = [c for c in requested if spec.serves(c)]
            if query.engines is not None:
                if spec.name not in query.engines:
                    continue
                selected.append((spec, served[0] if served else spec.categories[0]))
            elif served:
                selected.append((spec, served[0]))

        return selected
