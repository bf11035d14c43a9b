"""커스텀 예외 정의 (Structured Exception Hierarchy)"""
from typing import Any, Optional


class SearchGateException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모"""
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# 유효성 검증 관련 예외 (요청 전체를 실패시키는 유일한 예외)
class ValidationException(SearchGateException):
    """유효성 검증 예외"""
    def __init__(self, field: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Validation failed for '{field}': {reason}"
        super().__init__(message, "VALIDATION_ERROR",
                        details or {"field": field, "reason": reason})


class InvalidQueryException(ValidationException):
    """유효하지 않은 검색 요청"""
    def __init__(self, reason: str, field: str = "q", details: Optional[dict[str, Any]] = None):
        super().__init__(field, reason, details)


# 엔진 관련 예외 (엔진 단위, 요청 전체로 전파되지 않음)
class EngineException(SearchGateException):
    """엔진 호출 관련 예외의 기본 클래스"""
    def __init__(self, engine: str, message: str, error_code: str = "ENGINE_ERROR", details: Optional[dict[str, Any]] = None):
        self.engine = engine
        super().__init__(message, error_code or "ENGINE_ERROR", details or {"engine": engine})


class EngineTimeoutException(EngineException):
    """엔진 타임아웃"""
    def __init__(self, engine: str, timeout_s: float, details: Optional[dict[str, Any]] = None):
        message = f"Engine '{engine}' timed out after {timeout_s}s"
        super().__init__(engine, message, "ENGINE_TIMEOUT",
                        details or {"engine": engine, "timeout_s": timeout_s})


class EngineErrorException(EngineException):
    """엔진이 실패를 보고한 경우 (HTTP 오류, 파싱 실패 등)"""
    def __init__(self, engine: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Engine '{engine}' failed: {reason}"
        super().__init__(engine, message, "ENGINE_ERROR",
                        details or {"engine": engine, "reason": reason})


# 캐시 관련 예외 (best-effort: 로깅 후 미스로 처리)
class CacheException(SearchGateException):
    """캐시 관련 예외"""
    def __init__(self, message: str, error_code: str = "CACHE_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "CACHE_ERROR", details)


class CacheConnectionException(CacheException):
    """캐시 연결 실패"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to connect to cache: {reason}"
        super().__init__(message, "CACHE_CONNECTION_ERROR", details or {"reason": reason})


class CacheSerializationException(CacheException):
    """캐시 직렬화/역직렬화 오류"""
    def __init__(self, operation: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Cache {operation} failed: {reason}"
        super().__init__(message, "CACHE_SERIALIZATION_ERROR",
                        details or {"operation": operation, "reason": reason})


# 설정 관련 예외
class ConfigurationException(SearchGateException):
    """엔진 정의/설정 오류 (기동 시점에만 발생)"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Invalid configuration: {reason}"
        super().__init__(message, "CONFIG_ERROR", details or {"reason": reason})
