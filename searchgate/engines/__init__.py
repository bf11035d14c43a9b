"""Configurable engine adapters and registry construction.

공개 API는 이 파일에서만 export합니다.
"""

from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from searchgate.core.config import settings
from searchgate.core.exceptions import ConfigurationException
from searchgate.core.logging import logger
from searchgate.engine.adapter import EngineAdapter, EngineRegistry, EngineSpec
from searchgate.engine.query import Category
from searchgate.utils.resource_loader import load_engine_definitions

from .html_engine import HtmlEngine
from .http_client import SharedHttpClient, get_shared_http_client, shutdown_shared_http_client
from .json_api import JsonApiEngine

AdapterFactory = Callable[[EngineSpec, Optional[SharedHttpClient]], EngineAdapter]

# 정적 어댑터 테이블 (런타임 코드 로딩 없음)
ADAPTER_FACTORIES: Dict[str, AdapterFactory] = {
    "json_api": JsonApiEngine,
    "html": HtmlEngine,
}


def spec_from_definition(definition: Mapping[str, Any]) -> EngineSpec:
    """engines.yaml 항목 → EngineSpec (누락 값은 설정 기본값)

    Raises:
        ConfigurationException: 필수 값 누락/형식 오류
    """
    name = str(definition.get("name") or "").strip().lower()
    if not name:
        raise ConfigurationException("engine definition without name")

    kind = definition.get("kind")
    if kind not in ADAPTER_FACTORIES:
        raise ConfigurationException(f"engine '{name}' has unknown kind: {kind}")

    raw_categories = definition.get("categories") or [Category.GENERAL.value]
    if isinstance(raw_categories, str):
        raw_categories = [raw_categories]
    try:
        categories = tuple(Category(str(c).strip().lower()) for c in raw_categories)
    except ValueError as e:
        raise ConfigurationException(f"engine '{name}' has unknown category: {e}")

    try:
        return EngineSpec(
            name=name,
            kind=kind,
            categories=categories,
            timeout=float(definition.get("timeout", settings.engine_default_timeout)),
            weight=float(definition.get("weight", settings.engine_default_weight)),
            max_concurrency=int(definition.get("max_concurrency", settings.engine_default_max_concurrency)),
            min_interval=float(definition.get("min_interval", settings.engine_default_min_interval)),
            shortcut=(str(definition["shortcut"]).strip().lower() if definition.get("shortcut") else None),
            enabled=bool(definition.get("enabled", True)),
            params=dict(definition.get("params") or {}),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationException(f"engine '{name}' has invalid value: {e}")


def build_registry(
    definitions: Iterable[Mapping[str, Any]],
    http_client: Optional[SharedHttpClient] = None,
) -> EngineRegistry:
    """엔진 정의 목록으로 레지스트리 구성 (기동 시 1회)"""
    registry = EngineRegistry()
    client = http_client or get_shared_http_client()
    for definition in definitions:
        spec = spec_from_definition(definition)
        adapter = ADAPTER_FACTORIES[spec.kind](spec, client)
        registry.register(spec, adapter)
    logger.info(f"Engine registry loaded: {registry.names}")
    return registry


def load_registry(path: Optional[str] = None) -> EngineRegistry:
    """engines.yaml 로드 → 레지스트리"""
    return build_registry(load_engine_definitions(path or settings.engines_file))


__all__ = [
    "ADAPTER_FACTORIES",
    "HtmlEngine",
    "JsonApiEngine",
    "SharedHttpClient",
    "build_registry",
    "get_shared_http_client",
    "load_registry",
    "shutdown_shared_http_client",
    "spec_from_definition",
]
