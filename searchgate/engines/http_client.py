"""공유 HTTP 클라이언트 (curl_cffi)

- 요청마다 AsyncSession 을 만들면 TLS/커넥션 오버헤드가 커지므로 프로세스 단위로 재사용합니다.
- 사용자 식별 정보(IP 제외 헤더, 쿠키, 프록시 환경변수)는 업스트림으로 절대 전달하지 않습니다.
  모든 엔진 요청은 동일한 브라우저 지문/헤더로 나갑니다.
- 앱 종료 시 close()로 정리합니다.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

from curl_cffi.requests import AsyncSession

from searchgate.core.config import settings
from searchgate.core.logging import logger


class SharedHttpClient:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._session: Optional[AsyncSession] = None

    async def _ensure_session(self) -> AsyncSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = AsyncSession(
                impersonate=settings.http_impersonate,
                headers=self.default_headers(),
                allow_redirects=True,
                max_clients=settings.http_max_clients,
                trust_env=False,
            )
            return self._session

    def default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": settings.http_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
            "Accept-Language": settings.http_accept_language,
            "DNT": "1",
        }

    async def get_text(
        self,
        url: str,
        *,
        timeout_s: float,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[tuple[int, str]]:
        """GET 요청 → (status, body). 네트워크 실패 시 None"""
        sess = await self._ensure_session()
        try:
            resp = await sess.get(url, headers=headers, timeout=timeout_s)
            # 엔진 간 쿠키 공유/추적 방지
            sess.cookies.clear()
            status = getattr(resp, "status_code", 0) or 0
            text = getattr(resp, "text", "") or ""
            return status, text
        except Exception as e:
            logger.info(f"[HTTP_CLIENT] GET failed: {type(e).__name__}: {repr(e)}")
            return None

    async def close(self) -> None:
        async with self._lock:
            if self._session is None:
                return
            try:
                await self._session.close()
            finally:
                self._session = None


_shared_client: Optional[SharedHttpClient] = None


def get_shared_http_client() -> SharedHttpClient:
    global _shared_client
    if _shared_client is None:
        _shared_client = SharedHttpClient()
    return _shared_client


async def shutdown_shared_http_client() -> None:
    global _shared_client
    if _shared_client is None:
        return
    await _shared_client.close()
    _shared_client = None
