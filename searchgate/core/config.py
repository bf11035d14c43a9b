"""설정 관리 - 환경 변수 로드 및 검증"""
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # Redis (비어 있으면 프로세스 내 메모리 캐시 사용)
    redis_url: str = ""
    cache_ttl: int = 3600  # 1시간

    # 엔진 정의 파일 (resources/ 기준 상대 경로 또는 절대 경로)
    engines_file: str = "engines.yaml"

    # 엔진별 기본값 (engines.yaml 에서 개별 지정 가능)
    engine_default_timeout: float = 3.0
    engine_default_max_concurrency: int = 4
    engine_default_min_interval: float = 0.0
    engine_default_weight: float = 1.0

    # 회로차단(CB): 윈도우 내 실패가 임계값을 초과하면 쿨다운 동안 엔진 제외
    circuit_fail_threshold: int = 5
    circuit_window_seconds: float = 60.0
    circuit_open_seconds: float = 30.0

    # 프로세스 전체 동시 엔진 호출 상한 (엔진별 상한과 별개)
    global_concurrency: int = 64

    # 세션 데드라인 = 최대 엔진 타임아웃 + grace
    session_deadline_grace: float = 0.5

    # 병합 점수: 엔진 간 합의 가중치 (0이면 단순 가중합)
    agreement_bonus: float = 0.0

    # 여러 프로세스가 Redis 카운터로 in-flight 상한을 공유할지 여부
    shared_rate_counters: bool = False

    # 업스트림 HTTP (사용자 식별 정보는 절대 전달하지 않음)
    http_impersonate: str = "chrome110"
    http_user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    http_accept_language: str = "en-US,en;q=0.8"
    http_max_clients: int = 32

    # API
    api_title: str = "SearchGate"
    api_version: str = "0.1.0"
    api_description: str = "Privacy-preserving metasearch gateway."

    # 로깅
    log_level: str = "INFO"

    @field_validator("cache_ttl")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cache_ttl must be positive")
        return v

    @field_validator(
        "engine_default_timeout",
        "circuit_window_seconds",
        "circuit_open_seconds",
    )
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts and windows must be positive")
        return v

    @field_validator(
        "engine_default_max_concurrency",
        "circuit_fail_threshold",
        "global_concurrency",
        "http_max_clients",
    )
    @classmethod
    def validate_positive_counts(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("concurrency limits and thresholds must be positive")
        return v

    @field_validator(
        "engine_default_min_interval",
        "session_deadline_grace",
        "agreement_bonus",
    )
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("engine_default_weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("engine_default_weight must be positive")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
