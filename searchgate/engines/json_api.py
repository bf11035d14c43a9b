"""JSON API engine adapter

Configured entirely from ``engines.yaml``::

    - name: wikipedia
      kind: json_api
      params:
        search_url: "https://{language}.wikipedia.org/w/api.php?action=query&list=search&srsearch={query}&format=json"
        results_path: query.search
        fields: {title: title, content: snippet}
        url_template: "https://{language}.wikipedia.org/wiki/{title}"
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from searchgate.core.exceptions import EngineErrorException
from searchgate.engine.adapter import EngineSpec
from searchgate.engine.query import Query
from searchgate.engine.result import EnginePayload

from .base import TemplateEngine, dig
from .http_client import SharedHttpClient


DEFAULT_FIELDS = {
    "title": "title",
    "url": "url",
    "content": "content",
    "publishedDate": "publishedDate",
    "score": None,
}


class JsonApiEngine(TemplateEngine):
    """JSON 응답 엔진"""

    def __init__(self, spec: EngineSpec, http_client: Optional[SharedHttpClient] = None):
        super().__init__(spec, http_client)
        params = spec.params or {}
        self.results_path: Optional[str] = params.get("results_path", "results")
        self.suggestions_path: Optional[str] = params.get("suggestions_path")
        self.fields: Dict[str, Optional[str]] = {**DEFAULT_FIELDS, **(params.get("fields") or {})}
        self.url_template: Optional[str] = params.get("url_template")

    async def issue(self, query: Query, params: Dict[str, Any], timeout: float) -> EnginePayload:
        text = await self.fetch(self.build_url(query, params), timeout)
        try:
            data = json.loads(text)
        except ValueError as e:
            raise EngineErrorException(self.name, f"invalid JSON: {e}")
        return self.parse(data, params)

    def parse(self, data: Any, params: Optional[Dict[str, Any]] = None) -> EnginePayload:
        items = dig(data, self.results_path)
        if items is None:
            items = []
        if not isinstance(items, list):
            raise EngineErrorException(self.name, f"'{self.results_path}' is not a list")

        results: List[Dict[str, Any]] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            result = {key: dig(item, path) for key, path in self.fields.items() if path}
            if self.url_template and not result.get("url"):
                result["url"] = self._render_url(item, params or {})
            results.append(result)

        suggestions = dig(data, self.suggestions_path) if self.suggestions_path else None
        if not isinstance(suggestions, list):
            suggestions = []
        return EnginePayload.of(results, [s for s in suggestions if isinstance(s, str)])

    def _render_url(self, item: Dict[str, Any], params: Dict[str, Any]) -> Optional[str]:
        language = (params.get("language") or self.default_language).split("-")[0]
        values = {k: quote(str(v).replace(" ", "_")) for k, v in item.items() if isinstance(v, (str, int))}
        try:
            return self.url_template.format(**{**values, "language": language})
        except (KeyError, IndexError, ValueError):
            return None
