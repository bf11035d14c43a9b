"""해싱 유틸리티"""
import hashlib
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from searchgate.engine.query import Query


def hash_string(text: str) -> str:
    """
    문자열을 MD5 해시로 변환

    Args:
        text: 해시할 문자열

    Returns:
        MD5 해시 문자열
    """
    return hashlib.md5(text.encode()).hexdigest()


def normalize_query_text(text: str) -> str:
    """캐시 키 용도로 검색어 정규화 (공백 압축 + 소문자)"""
    return " ".join((text or "").split()).lower()


def generate_cache_key(query: "Query") -> str:
    """
    정규화된 Query 로 캐시 키 생성

    카테고리/엔진은 정렬해서 넣으므로 입력 순서와 무관하게 같은 키가 나옵니다.

    Args:
        query: 검색 요청

    Returns:
        Redis 캐시 키
    """
    payload = {
        "q": normalize_query_text(query.text),
        "categories": sorted(c.value for c in query.categories),
        "engines": sorted(query.engines) if query.engines else None,
        "language": (query.language or "").lower() or None,
        "page": query.page,
    }
    hashed = hash_string(json.dumps(payload, sort_keys=True, ensure_ascii=False))
    return f"search:{hashed}"


def generate_rate_key(engine: str) -> str:
    """엔진별 in-flight 공유 카운터 키"""
    return f"rate:inflight:{engine}"
