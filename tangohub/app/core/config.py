import json
import re
from typing import Annotated, Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_prefixes(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []

    # Prefer JSON, but tolerate comma/space separated values.
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]

    prefixes: list[str] = []
    for part in re.split(r"[,\s]+", raw):
        if part and part not in prefixes:
            prefixes.append(part if part.startswith("/") else f"/{part}")
    return prefixes


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Response cache settings
    cache_enabled: bool = True
    cache_default_ttl: int = 300  # 5 minutes
    cache_sweep_interval_seconds: int = 300
    cache_prefixes: Annotated[list[str], NoDecode] = [
        "/api/v1/posts",
        "/api/v1/trending",
    ]

    @field_validator("cache_prefixes", mode="before")
    @classmethod
    def decode_cache_prefixes(cls, v: Any) -> list[str]:
        return _parse_prefixes(v)

    # Rate limiting settings (outbound AI provider calls)
    rate_limit_poll_interval_ms: int = 100
    rate_limit_max_wait_ms: int = 30000
    # Optional JSON file replacing the built-in per-model table
    rate_limits_file: Optional[str] = None

    # Trending topic settings
    trending_window_hours: float = 24.0

    @field_validator(
        "cache_default_ttl",
        "cache_sweep_interval_seconds",
        "rate_limit_poll_interval_ms",
        "rate_limit_max_wait_ms",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate interval and TTL values are positive."""
        if v < 1:
            raise ValueError("interval and TTL values must be at least 1")
        return v

    @field_validator("trending_window_hours")
    @classmethod
    def validate_window(cls, v: float) -> float:
        """Validate trending window is positive."""
        if v <= 0:
            raise ValueError("trending_window_hours must be positive")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
