"""URL 정규화 유틸리티 - 엔진 간 동일 결과 판별용 identity key"""
from typing import Optional
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit


# 결과 동일성 판단에 영향을 주지 않는 추적용 쿼리 파라미터
TRACKING_PARAMS = frozenset({
    "fbclid", "gclid", "dclid", "gbraid", "wbraid", "msclkid", "yclid",
    "igshid", "mc_cid", "mc_eid", "ref_src", "spm", "_hsenc", "_hsmi",
    "mkt_tok", "oly_anon_id", "oly_enc_id", "vero_id",
})
TRACKING_PREFIXES = ("utm_", "pk_", "hsa_")

DEFAULT_PORTS = {"http": 80, "https": 443}


def is_http_url(url: Optional[str]) -> bool:
    """http(s) 절대 URL 여부"""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return False
    return parsed.scheme.lower() in DEFAULT_PORTS and bool(parsed.hostname)


def is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered in TRACKING_PARAMS or lowered.startswith(TRACKING_PREFIXES)


def identity_key(url: str) -> str:
    """
    결과 URL 을 엔진 간 비교용 identity key 로 정규화

    Examples:
        >>> identity_key("https://www.Example.com/docs/?utm_source=x&b=2&a=1#top")
        'example.com/docs?a=1&b=2'
        >>> identity_key("http://example.com:80/docs")
        'example.com/docs'

    - scheme 은 비교 대상에서 제외 (http/https 동일 취급)
    - host 소문자 + ``www.`` 제거, 기본 포트 제거
    - path 끝 슬래시 / fragment 제거, percent-encoding 해제
    - 추적 파라미터 제거 후 나머지 파라미터 정렬

    Args:
        url: 원본 URL

    Returns:
        identity key (파싱 불가 시 공백 제거한 소문자 원문)
    """
    raw = (url or "").strip()
    try:
        parsed = urlsplit(raw)
        host = (parsed.hostname or "").lower()
        port = parsed.port
    except ValueError:
        return raw.lower()

    if not host:
        return raw.lower()

    if host.startswith("www."):
        host = host[4:]

    scheme = parsed.scheme.lower()
    netloc = host
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"

    path = unquote(parsed.path or "")
    while "//" in path:
        path = path.replace("//", "/")
    path = path.rstrip("/")

    params = [
        (k, v)
        for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        if not is_tracking_param(k)
    ]
    params.sort()

    key = f"{netloc}{path}"
    if params:
        key = f"{key}?{urlencode(params)}"
    return key
