"""Result Normalizer - Raw engine payload to canonical records

Pure functions only. Relevance is mapped onto [0, 1]: an explicit adapter
confidence wins, otherwise position decay ``1 / (1 + position)``.
"""

import html
import re
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from searchgate.utils.url_utils import is_http_url

from .query import Category
from .result import RawEngineResponse, ResultRecord


MAX_TITLE_LENGTH = 300
MAX_SNIPPET_LENGTH = 1000

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def position_score(position: int) -> float:
    """순위 기반 점수 (0번째 = 1.0, 1번째 = 0.5, 2번째 = 0.333...)"""
    return 1.0 / (1.0 + max(0, position))


def coerce_confidence(value: Any) -> Optional[float]:
    """어댑터가 준 confidence 를 [0, 1] 로 변환 (숫자가 아니면 None)"""
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score:  # NaN
        return None
    return min(1.0, max(0.0, score))


def clean_text(value: Any, max_length: int) -> str:
    """HTML 태그 제거 + 엔티티 해제 + 공백 압축"""
    if value is None:
        return ""
    text = html.unescape(_TAG_RE.sub(" ", str(value)))
    text = _WS_RE.sub(" ", text).strip()
    if len(text) > max_length:
        text = text[:max_length].rstrip() + "…"
    return text


def parse_published_date(value: Any) -> Optional[datetime]:
    """ISO-8601 문자열 / epoch 초 / datetime → timezone-aware datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        candidate = value.strip()
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _item_category(item: Mapping[str, Any], default: Category) -> Category:
    value = item.get("category")
    if isinstance(value, str):
        try:
            return Category(value.strip().lower())
        except ValueError:
            return default
    return default


def normalize(engine: str, category: Category, raw: RawEngineResponse) -> Tuple[ResultRecord, ...]:
    """엔진 응답을 정규화된 레코드로 변환

    ok 가 아닌 응답은 빈 튜플. URL 이 http(s) 가 아닌 항목은 버리며, 순위는
    남은 항목 기준으로 다시 매깁니다.

    Args:
        engine: 엔진 이름 (레코드의 engine 값은 항상 이 값)
        category: 디스패치 카테고리 (항목이 유효한 category 를 주면 그 값 우선)
        raw: 엔진 응답

    Returns:
        엔진 순위 순서의 레코드
    """
    if not raw.is_ok or raw.payload is None:
        return ()

    records: List[ResultRecord] = []
    for item in raw.payload.results:
        if not isinstance(item, Mapping):
            continue
        url = item.get("url")
        if not is_http_url(url):
            continue
        url = url.strip()

        confidence = coerce_confidence(item.get("score"))
        score = confidence if confidence is not None else position_score(len(records))

        title = clean_text(item.get("title"), MAX_TITLE_LENGTH) or url
        snippet = clean_text(item.get("content", item.get("snippet")), MAX_SNIPPET_LENGTH)
        published = parse_published_date(item.get("publishedDate", item.get("published_date")))

        records.append(
            ResultRecord(
                title=title,
                url=url,
                snippet=snippet,
                engine=engine,
                category=_item_category(item, category),
                score=score,
                published_date=published,
            )
        )

    return tuple(records)
