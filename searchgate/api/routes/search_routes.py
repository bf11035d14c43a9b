"""Search Routes - HTTP layer translator for the aggregation engine

HTTP Layer가 Engine Layer로 요청을 위임하는 단순한 Translator 역할만 수행합니다.
"""

import html
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query as QueryParam
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from searchgate.core.exceptions import ValidationException
from searchgate.core.logging import logger
from searchgate.engine import AggregationResult, CacheAdapter, SearchOrchestrator
from searchgate.schemas.search_schema import EngineStatusItem, ErrorResponse, SearchResponse

router = APIRouter(tags=["search"])

# 싱글톤 서비스
_cache_adapter: Optional[CacheAdapter] = None
_orchestrator: Optional[SearchOrchestrator] = None


def get_cache_adapter() -> CacheAdapter:
    """CacheAdapter 싱글톤 (REDIS_URL 없으면 메모리 캐시)"""
    global _cache_adapter
    if _cache_adapter is None:
        _cache_adapter = CacheAdapter()
    return _cache_adapter


def get_orchestrator(cache_adapter: CacheAdapter = Depends(get_cache_adapter)) -> SearchOrchestrator:
    """SearchOrchestrator 싱글톤

    Engine Layer의 진입점을 제공합니다. 엔진 레지스트리는 최초 호출 시 1회 구성됩니다.
    """
    global _orchestrator
    if _orchestrator is None:
        from searchgate.engines import load_registry

        _orchestrator = SearchOrchestrator(registry=load_registry(), cache=cache_adapter)
    return _orchestrator


class SearchRequest(BaseModel):
    """POST /search 요청"""
    q: Optional[str] = Field(None, description="검색어 (검증은 엔진 레이어에서)")
    format: str = Field("json", pattern="^(json|html)$")
    categories: Optional[str] = Field(None, max_length=200, description="콤마 구분 카테고리")
    engines: Optional[str] = Field(None, max_length=500, description="콤마 구분 엔진")
    language: Optional[str] = Field(None, max_length=10)
    pageno: Union[int, str] = 1


def _validation_error(e: ValidationException) -> JSONResponse:
    logger.info(f"Rejected search request: {e.error_code} {e.details}")
    body = ErrorResponse(error_code=e.error_code, message=e.message, details=e.details)
    return JSONResponse(status_code=400, content=body.model_dump())


def render_html(result: AggregationResult) -> str:
    """최소 HTML 결과 목록 (UI 렌더링은 별도 프론트엔드 몫)"""
    items = []
    for record in result.results:
        items.append(
            "<li>"
            f'<a href="{html.escape(record.url)}" rel="noreferrer noopener">{html.escape(record.title)}</a>'
            f"<p>{html.escape(record.snippet)}</p>"
            f"<small>{html.escape(', '.join(record.engines))} · {record.score:.3f}</small>"
            "</li>"
        )
    unresponsive = ", ".join(f"{u.engine} ({u.reason.value})" for u in result.unresponsive_engines)
    suggestions = ", ".join(html.escape(s) for s in result.suggestions)
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        '<meta name="referrer" content="no-referrer">'
        f"<title>{html.escape(result.query.text)} - SearchGate</title></head><body>"
        f"<h1>{html.escape(result.query.text)}</h1>"
        f"<ol>{''.join(items)}</ol>"
        + (f"<p>Suggestions: {suggestions}</p>" if suggestions else "")
        + (f"<p>Unresponsive engines: {html.escape(unresponsive)}</p>" if unresponsive else "")
        + "</body></html>"
    )


async def _run_search(
    orchestrator: SearchOrchestrator,
    q: Optional[str],
    output_format: str,
    categories: Optional[str],
    engines: Optional[str],
    language: Optional[str],
    pageno,
):
    try:
        query = orchestrator.parse(q, categories=categories, engines=engines, language=language, pageno=pageno)
        result = await orchestrator.search(query)
    except ValidationException as e:
        return _validation_error(e)

    if output_format == "html":
        return HTMLResponse(render_html(result))
    return SearchResponse.from_result(result)


@router.get("/search", response_model=SearchResponse, responses={400: {"model": ErrorResponse}})
async def search_get(
    q: Optional[str] = QueryParam(None),
    format: str = QueryParam("json", pattern="^(json|html)$"),
    categories: Optional[str] = QueryParam(None, max_length=200),
    engines: Optional[str] = QueryParam(None, max_length=500),
    language: Optional[str] = QueryParam(None, max_length=10),
    pageno: str = QueryParam("1"),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """
    메타검색

    - 여러 엔진에 동시 요청 후 병합/정렬
    - 실패한 엔진은 unresponsive_engines 에 사유와 함께 표시
    - 검색어 안 선택자: ``!엔진`` ``!카테고리`` ``:언어``
    """
    return await _run_search(orchestrator, q, format, categories, engines, language, pageno)


@router.post("/search", response_model=SearchResponse, responses={400: {"model": ErrorResponse}})
async def search_post(
    request: SearchRequest,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """메타검색 (POST, 검색어가 URL/리퍼러에 남지 않음)"""
    return await _run_search(
        orchestrator,
        request.q,
        request.format,
        request.categories,
        request.engines,
        request.language,
        request.pageno,
    )


@router.get("/engines", response_model=list[EngineStatusItem])
async def list_engines(orchestrator: SearchOrchestrator = Depends(get_orchestrator)):
    """설정된 엔진과 현재 rate 상태"""
    snapshot = orchestrator.budgeter.snapshot()
    return [
        EngineStatusItem(
            name=spec.name,
            categories=[c.value for c in spec.categories],
            enabled=spec.enabled,
            shortcut=spec.shortcut,
            weight=spec.weight,
            timeout=spec.timeout,
            rate_state=snapshot.get(spec.name),
        )
        for spec in orchestrator.registry
    ]
