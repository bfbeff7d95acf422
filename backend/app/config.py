from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Database
    database_url: str = "sqlite:///./pastes.db"

    # Limits
    max_ciphertext_size: int = 1_048_576  # 1MB
    iv_min_bytes: int = 12
    iv_max_bytes: int = 64
    id_length: int = 10
    delete_token_length: int = 24
    min_expiry_seconds: int = 10
    max_views_allowed: int = 1000

    # Proof of Work
    pow_enabled: bool = True
    pow_difficulty: int = 10  # leading zero bits
    pow_challenge_ttl_seconds: int = 180

    # Token bucket for paste creation
    rate_limit_enabled: bool = True
    rate_limit_capacity: int = 10
    rate_limit_refill_per_minute: int = 10
    rate_limit_idle_seconds: int = 3600

    # Coarse per-route limits (slowapi)
    rate_limit_pow: str = "30/minute"
    rate_limit_retrieves: str = "60/minute"

    # Brute-force protection for password-derived deletion
    delete_max_failed_attempts: int = 10
    delete_failed_window_seconds: int = 300

    # Storage
    storage_retry_attempts: int = 3
    storage_retry_backoff_seconds: float = 0.05

    # Background cleanup
    cleanup_interval_minutes: int = 5

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"

    # Proxies whose X-Real-IP header is trusted
    trusted_proxy_ips: list[str] | str = []

    # CORS
    cors_origins: list[str] | str = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @field_validator("cors_origins", "trusted_proxy_ips", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse a comma-separated string or list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


settings = Settings()
