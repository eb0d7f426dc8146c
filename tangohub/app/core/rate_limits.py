"""Static per-(platform, model) quota table for outbound AI provider calls.

The table is loaded and validated once at startup and never mutated
afterwards. Lookups of unconfigured pairs fail loudly.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tangohub.app.exceptions import ConfigurationError


class ModelKey(NamedTuple):
    """Value-typed (platform, model) pair."""

    platform: str
    model: str

    def __str__(self) -> str:
        return f"{self.platform}:{self.model}"


class RateLimitConfig(BaseModel):
    """Published provider quota for one model."""

    model_config = ConfigDict(frozen=True)

    requests_per_minute: float = Field(..., ge=1)
    tokens_per_minute: Optional[int] = Field(None, gt=0)
    requests_per_day: Optional[int] = Field(None, gt=0)


DEFAULT_RATE_LIMITS: dict[str, dict[str, dict[str, Any]]] = {
    "openai": {
        "gpt-4o": {"requests_per_minute": 500, "tokens_per_minute": 30_000, "requests_per_day": 10_000},
        "gpt-4o-mini": {"requests_per_minute": 500, "tokens_per_minute": 200_000, "requests_per_day": 10_000},
        "gpt-4-turbo": {"requests_per_minute": 500, "tokens_per_minute": 30_000, "requests_per_day": 10_000},
    },
    "anthropic": {
        "claude-3-5-sonnet-20241022": {"requests_per_minute": 50, "tokens_per_minute": 40_000, "requests_per_day": 5_000},
        "claude-3-5-haiku-20241022": {"requests_per_minute": 50, "tokens_per_minute": 50_000, "requests_per_day": 5_000},
        "claude-3-opus-20240229": {"requests_per_minute": 50, "tokens_per_minute": 20_000, "requests_per_day": 5_000},
    },
    "groq": {
        "llama-3.1-70b-versatile": {"requests_per_minute": 30, "tokens_per_minute": 14_400, "requests_per_day": 14_400},
        "llama-3.1-8b-instant": {"requests_per_minute": 30, "tokens_per_minute": 20_000, "requests_per_day": 20_000},
        "mixtral-8x7b-32768": {"requests_per_minute": 30, "tokens_per_minute": 5_000, "requests_per_day": 5_000},
    },
    "gemini": {
        "gemini-1.5-flash": {"requests_per_minute": 60, "tokens_per_minute": 4_000_000, "requests_per_day": 1_500},
        "gemini-1.5-pro": {"requests_per_minute": 60, "tokens_per_minute": 4_000_000, "requests_per_day": 1_000},
        "gemini-2.5-flash": {"requests_per_minute": 60, "tokens_per_minute": 4_000_000, "requests_per_day": 1_500},
        "gemini-2.5-flash-lite": {"requests_per_minute": 60, "tokens_per_minute": 1_000_000, "requests_per_day": 1_500},
    },
    "openrouter": {
        "meta-llama/llama-3-70b": {"requests_per_minute": 200, "tokens_per_minute": 100_000, "requests_per_day": 10_000},
        "anthropic/claude-3-sonnet": {"requests_per_minute": 200, "tokens_per_minute": 40_000, "requests_per_day": 10_000},
    },
}


class RateLimitTable(Mapping[ModelKey, RateLimitConfig]):
    """Immutable, validated mapping of ModelKey -> RateLimitConfig."""

    def __init__(self, entries: Mapping[ModelKey, RateLimitConfig]):
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Mapping[str, Mapping[str, Any]]]) -> "RateLimitTable":
        """Build a table from a nested ``{platform: {model: {...}}}`` mapping.

        Raises:
            ConfigurationError: If the structure or any entry is invalid.
        """
        if not isinstance(raw, Mapping):
            raise ConfigurationError("Rate limit table must be a mapping of platforms")

        entries: dict[ModelKey, RateLimitConfig] = {}
        for platform, models in raw.items():
            if not isinstance(models, Mapping):
                raise ConfigurationError(
                    f"Rate limits for platform '{platform}' must be a mapping of models",
                    platform=platform,
                )
            for model, values in models.items():
                try:
                    entries[ModelKey(platform, model)] = RateLimitConfig.model_validate(values)
                except ValidationError as e:
                    raise ConfigurationError(
                        f"Invalid rate limit for {platform}:{model}: {e}",
                        platform=platform,
                        model=model,
                    ) from e
        return cls(entries)

    @classmethod
    def from_file(cls, path: str | Path) -> "RateLimitTable":
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot load rate limit table from {path}: {e}") from e
        return cls.from_dict(raw)

    @classmethod
    def default(cls) -> "RateLimitTable":
        return cls.from_dict(DEFAULT_RATE_LIMITS)

    def require(self, platform: str, model: str) -> RateLimitConfig:
        """Return the config for a pair or raise ConfigurationError."""
        config = self._entries.get(ModelKey(platform, model))
        if config is None:
            raise ConfigurationError(
                f"No rate limit configured for {platform}:{model}",
                platform=platform,
                model=model,
            )
        return config

    def platforms(self) -> list[str]:
        return sorted({key.platform for key in self._entries})

    def __getitem__(self, key: ModelKey) -> RateLimitConfig:
        return self._entries[key]

    def __iter__(self) -> Iterator[ModelKey]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def load_rate_limit_table(path: Optional[str] = None) -> RateLimitTable:
    """Load the table from a JSON file, or the built-in defaults."""
    if path:
        return RateLimitTable.from_file(path)
    return RateLimitTable.default()
