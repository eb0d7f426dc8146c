"""Custom exceptions for the tangohub application."""

from typing import Optional


class TangoHubException(Exception):
    """Base class for tangohub exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "TangoHub error"):
        self.message = message
        super().__init__(message)


class ConfigurationError(TangoHubException):
    """Raised when static configuration is missing or invalid.

    Covers unknown (platform, model) pairs in the rate limiter and
    malformed rate-limit tables. Never defaulted silently.
    """
    status_code = 500

    def __init__(
        self,
        message: str = "Invalid configuration",
        platform: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.platform = platform
        self.model = model
        super().__init__(message)


class RateLimitExceededError(TangoHubException):
    """Raised when an outbound provider call cannot obtain a token.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(
        self,
        platform: str,
        model: str,
        retry_after_ms: int = 0,
        detail: Optional[str] = None,
    ):
        self.platform = platform
        self.model = model
        self.retry_after_ms = retry_after_ms
        message = detail or f"Rate limit exceeded for {platform}:{model}"
        super().__init__(message)
