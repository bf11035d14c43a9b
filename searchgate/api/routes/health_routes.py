"""헬스 체크 엔드포인트"""
from fastapi import APIRouter
from datetime import datetime

from searchgate.schemas.search_schema import HealthResponse
from searchgate import __version__

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Liveness 프로브

    집계 경로(엔진/캐시)를 전혀 건드리지 않습니다.
    """
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(),
        version=__version__
    )


@router.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "service": "SearchGate",
        "version": __version__,
        "docs": "/docs"
    }
