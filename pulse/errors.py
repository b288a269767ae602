"""Exception types raised by the news core."""

from __future__ import annotations


class PulseError(RuntimeError):
    """Base class for errors raised inside the news core."""


class LLMClientError(PulseError):
    """Raised when an LLM call fails terminally (retries exhausted)."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class LLMConfigError(LLMClientError):
    """Raised when the LLM client is used without an API key."""


class LLMRetryableError(PulseError):
    """Raised for transient LLM failures (network, non-2xx, malformed envelope)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(PulseError):
    """Raised when a model response contains no usable JSON payload."""
