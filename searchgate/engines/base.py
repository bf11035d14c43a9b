"""Shared helpers for configurable engine adapters."""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote_plus

from searchgate.core.exceptions import ConfigurationException, EngineErrorException
from searchgate.engine.adapter import EngineSpec
from searchgate.engine.query import Query

from .http_client import SharedHttpClient, get_shared_http_client


URL_PLACEHOLDERS = {"query", "pageno", "offset", "language", "category"}


def dig(data: Any, path: Optional[str]) -> Any:
    """점(.) 경로로 중첩 dict/list 값 조회 ("query.search", "items.0.link")"""
    if not path:
        return data
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


class TemplateEngine:
    """search_url 템플릿 기반 어댑터 공통 부분

    지원 placeholder: {query} {pageno} {offset} {language} {category}
    """

    def __init__(self, spec: EngineSpec, http_client: Optional[SharedHttpClient] = None):
        self.spec = spec
        self.name = spec.name
        self.http = http_client or get_shared_http_client()

        params = spec.params or {}
        self.search_url: str = params.get("search_url", "")
        if not self.search_url:
            raise ConfigurationException(f"engine '{spec.name}' requires params.search_url")
        self.page_size: int = int(params.get("page_size", 10))
        self.default_language: str = params.get("default_language", "en")
        self.headers: Dict[str, str] = dict(params.get("headers") or {})

        try:
            self.search_url.format(query="", pageno=1, offset=0, language="", category="")
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigurationException(f"engine '{spec.name}' has invalid search_url: {e}")

    def build_url(self, query: Query, params: Dict[str, Any]) -> str:
        pageno = int(params.get("pageno") or 1)
        language = params.get("language") or self.default_language
        return self.search_url.format(
            query=quote_plus(query.text),
            pageno=pageno,
            offset=(pageno - 1) * self.page_size,
            language=quote_plus(language.split("-")[0]),
            category=params.get("category", ""),
        )

    async def fetch(self, url: str, timeout: float) -> str:
        """GET → 본문 (실패 시 EngineErrorException)"""
        response = await self.http.get_text(url, timeout_s=timeout, headers=self.headers or None)
        if response is None:
            raise EngineErrorException(self.name, "request failed")
        status, text = response
        if status == 429:
            raise EngineErrorException(self.name, "upstream rate limit (HTTP 429)")
        if status >= 400 or status == 0:
            raise EngineErrorException(self.name, f"HTTP {status}")
        return text
