"""HTML engine adapter (CSS selectors, parsed with selectolax)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from selectolax.parser import HTMLParser, Node

from searchgate.core.exceptions import ConfigurationException
from searchgate.engine.adapter import EngineSpec
from searchgate.engine.query import Query
from searchgate.engine.result import EnginePayload

from .base import TemplateEngine
from .http_client import SharedHttpClient


class HtmlEngine(TemplateEngine):
    """HTML 결과 페이지 엔진

    params:
        results_selector: 결과 항목 컨테이너
        title_selector / url_selector / content_selector: 항목 내부 선택자
        url_attribute: URL 속성 (기본 href)
        suggestion_selector: 추천어 (선택)
    """

    def __init__(self, spec: EngineSpec, http_client: Optional[SharedHttpClient] = None):
        super().__init__(spec, http_client)
        params = spec.params or {}
        self.results_selector: str = params.get("results_selector", "")
        self.title_selector: str = params.get("title_selector", "a")
        self.url_selector: str = params.get("url_selector", self.title_selector)
        self.url_attribute: str = params.get("url_attribute", "href")
        self.content_selector: Optional[str] = params.get("content_selector")
        self.suggestion_selector: Optional[str] = params.get("suggestion_selector")
        if not self.results_selector:
            raise ConfigurationException(f"engine '{spec.name}' requires params.results_selector")

    async def issue(self, query: Query, params: Dict[str, Any], timeout: float) -> EnginePayload:
        text = await self.fetch(self.build_url(query, params), timeout)
        return self.parse(text)

    def parse(self, text: str) -> EnginePayload:
        tree = HTMLParser(text or "")
        results: List[Dict[str, Any]] = []

        for node in tree.css(self.results_selector):
            url_node = node.css_first(self.url_selector)
            if url_node is None:
                continue
            url = (url_node.attributes.get(self.url_attribute) or "").strip()
            if url.startswith("//"):
                url = f"https:{url}"
            results.append({
                "title": _text(node.css_first(self.title_selector)),
                "url": url,
                "content": _text(node.css_first(self.content_selector)) if self.content_selector else "",
            })

        suggestions: List[str] = []
        if self.suggestion_selector:
            suggestions = [t for t in (_text(n) for n in tree.css(self.suggestion_selector)) if t]

        return EnginePayload.of(results, suggestions)


def _text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return node.text(separator=" ", strip=True)
