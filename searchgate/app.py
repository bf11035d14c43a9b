"""FastAPI 앱 팩토리"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from searchgate.core.config import settings
from searchgate.core.exceptions import CacheException
from searchgate.core.logging import logger
from searchgate.api import health_router, search_router, get_cache_adapter


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기"""
    logger.info("Starting application...")
    cache_adapter = get_cache_adapter()
    try:
        await cache_adapter.cache_service.connect()
    except CacheException as e:
        # 캐시는 best-effort: 연결 실패해도 항상 미스로 동작
        logger.warning(f"Cache unavailable at startup: {e}")
    logger.info("Application started")
    yield
    logger.info("Shutting down application...")
    from searchgate.engines import shutdown_shared_http_client

    await shutdown_shared_http_client()
    try:
        await cache_adapter.cache_service.close()
    except Exception as e:
        logger.warning(f"Cache close failed: {type(e).__name__}: {e}")


def create_app() -> FastAPI:
    """
    FastAPI 앱 생성 (Factory Pattern)

    Returns:
        FastAPI 앱 인스턴스
    """
    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan
    )

    # 결과 페이지를 다른 출처에 임베드해도 쿠키/자격 증명은 허용하지 않음
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(search_router)

    return app

# 앱 인스턴스 생성 (uvicorn이 로드할 수 있도록)
app = create_app()
