"""리소스 파일(YAML) 로더 유틸리티"""
import os
import yaml
from typing import Any, Dict, List
from functools import lru_cache

from searchgate.core.exceptions import ConfigurationException
from searchgate.core.logging import logger


def get_resource_path(relative_path: str) -> str:
    """프로젝트 루트 기준 리소스 절대 경로 반환 (절대 경로는 그대로)"""
    if os.path.isabs(relative_path):
        return relative_path
    # searchgate/utils/resource_loader.py -> searchgate/utils -> searchgate -> root
    base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    return os.path.join(base_dir, "resources", relative_path)


@lru_cache(maxsize=32)
def load_yaml_resource(relative_path: str) -> Dict[str, Any]:
    """YAML 리소스 로드 및 캐싱"""
    path = get_resource_path(relative_path)
    if not os.path.exists(path):
        logger.warning(f"Resource not found: {path}")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load YAML resource {path}: {e}")
        raise ConfigurationException(f"cannot read {path}: {e}")


def load_engine_definitions(relative_path: str = "engines.yaml") -> List[Dict[str, Any]]:
    """엔진 정의 목록 로드"""
    data = load_yaml_resource(relative_path)
    engines = data.get("engines", [])
    if not isinstance(engines, list):
        raise ConfigurationException(f"'engines' in {relative_path} must be a list")
    return [e for e in engines if isinstance(e, dict)]
