"""Query - Immutable search request model

Parses raw request parameters (and ``!bang`` / ``:lang`` selectors embedded in
the query text) into a validated, immutable ``Query``.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Union

from searchgate.core.exceptions import InvalidQueryException


MAX_QUERY_LENGTH = 500
MAX_PAGE = 50

_LANGUAGE_RE = re.compile(r"^[a-zA-Z]{2,3}(-[a-zA-Z]{2,4})?$")


class Category(str, Enum):
    """결과 카테고리

    선언 순서가 곧 카테고리 우선순위입니다 (엔진 카테고리 결정에 사용).
    """

    GENERAL = "general"
    IMAGES = "images"
    VIDEOS = "videos"
    NEWS = "news"
    SCIENCE = "science"
    FILES = "files"
    IT = "it"
    SOCIAL = "social"

    @classmethod
    def parse(cls, value: Union[str, "Category"]) -> "Category":
        """문자열을 Category 로 변환

        Raises:
            InvalidQueryException: 알 수 없는 카테고리
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidQueryException(f"unknown category: {value}", field="categories")

    @classmethod
    def ordered(cls, categories: Iterable["Category"]) -> List["Category"]:
        """선언 순서대로 정렬된 카테고리 목록"""
        wanted = set(categories)
        return [c for c in cls if c in wanted]


@dataclass(frozen=True)
class Query:
    """검색 요청 (생성 이후 불변)

    Attributes:
        text: 업스트림으로 전달될 검색어
        categories: 요청 카테고리 (1개 이상)
        engines: 명시적으로 선택된 엔진 (None 이면 카테고리 기준 선택)
        language: 언어 코드 (예: "en", "ko-KR")
        page: 페이지 번호 (1부터)
    """

    text: str
    categories: FrozenSet[Category] = field(default_factory=lambda: frozenset({Category.GENERAL}))
    engines: Optional[FrozenSet[str]] = None
    language: Optional[str] = None
    page: int = 1


def _split_values(values: Union[None, str, Iterable[str]]) -> List[str]:
    """콤마 구분 문자열 또는 iterable 을 정리된 리스트로 변환"""
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    return [v.strip() for v in values if v and v.strip()]


def _parse_page(pageno: Union[int, str, None]) -> int:
    if pageno is None or pageno == "":
        return 1
    try:
        page = int(pageno)
    except (TypeError, ValueError):
        raise InvalidQueryException(f"pageno must be an integer: {pageno}", field="pageno")
    if page < 1 or page > MAX_PAGE:
        raise InvalidQueryException(f"pageno must be between 1 and {MAX_PAGE}", field="pageno")
    return page


def _parse_language(language: Optional[str]) -> Optional[str]:
    if not language or language == "all":
        return None
    if not _LANGUAGE_RE.match(language):
        raise InvalidQueryException(f"invalid language code: {language}", field="language")
    return language


def parse_query(
    text: Optional[str],
    categories: Union[None, str, Iterable[str]] = None,
    engines: Union[None, str, Iterable[str]] = None,
    language: Optional[str] = None,
    pageno: Union[int, str, None] = 1,
    resolve_engine: Optional[Callable[[str], Optional[str]]] = None,
) -> Query:
    """원시 요청 파라미터를 Query 로 변환

    검색어 안의 선택자도 처리합니다.
    - ``!news`` : 카테고리 추가
    - ``!wp``   : 엔진 이름/단축어 추가 (resolve_engine 으로 해석)
    - ``:ko``   : 언어 지정 (language 파라미터가 없을 때만)

    해석되지 않는 토큰은 검색어에 그대로 남습니다.

    Args:
        text: 사용자 입력 검색어
        categories: 카테고리 목록 또는 콤마 구분 문자열
        engines: 엔진 이름 목록 또는 콤마 구분 문자열
        language: 언어 코드
        pageno: 페이지 번호
        resolve_engine: 엔진 이름/단축어 → 엔진 이름 (알 수 없으면 None)

    Returns:
        Query: 검증된 요청

    Raises:
        InvalidQueryException: 검색어 누락, 알 수 없는 카테고리, 잘못된 페이지 등
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidQueryException("query text must not be empty")
    if len(text) > MAX_QUERY_LENGTH:
        raise InvalidQueryException(f"query text longer than {MAX_QUERY_LENGTH} characters")

    selected_categories = [Category.parse(c) for c in _split_values(categories)]
    selected_engines = _split_values(engines)
    inline_language: Optional[str] = None

    kept: List[str] = []
    for token in text.split():
        if len(token) > 1 and token.startswith("!"):
            name = token[1:].lower()
            if name in {c.value for c in Category}:
                selected_categories.append(Category(name))
                continue
            resolved = resolve_engine(name) if resolve_engine else None
            if resolved:
                selected_engines.append(resolved)
                continue
        elif len(token) > 2 and token.startswith(":") and _LANGUAGE_RE.match(token[1:]):
            inline_language = token[1:]
            continue
        kept.append(token)

    query_text = " ".join(kept)
    if not query_text:
        raise InvalidQueryException("query text must not be empty after removing selectors")

    return Query(
        text=query_text,
        categories=frozenset(selected_categories or [Category.GENERAL]),
        engines=frozenset(selected_engines) if selected_engines else None,
        language=_parse_language(language) or inline_language,
        page=_parse_page(pageno),
    )
