"""
Structured error types for the intake pipeline.

Every error raised by intake-core carries enough metadata for the retry
executor, the circuit breaker and the HTTP layer to decide what to do with
it without string matching:

- **Category:** What kind of failure (network, provider, circuit, queue ...)
- **Retryable:** Whether the retry executor may attempt the call again
- **Retry-after:** Seconds the caller should wait, when known
- **Context:** Stage, service and HTTP metadata for logging
- **Cause:** The chained underlying exception

Architecture:
    ::

        IntakeError
          ├── TransientError (retryable)
          │     ├── NetworkError
          │     └── TimeoutExpired
          ├── ProviderError             (retryable iff http_status >= 500)
          ├── AdmissionDeniedError      (quota exceeded, 429)
          ├── CircuitOpenError          (fast-fail, provider degraded)
          ├── QueueFullError            (best-effort durability unavailable)
          ├── ValidationError
          ├── AuthenticationError
          └── ConfigError

Usage:
    from intake.core.errors import ProviderError, is_retryable

    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ProviderError(
            "issue tracker rejected request",
            http_status=e.response.status_code,
            cause=e,
        ).with_context(service="issue_tracker")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"           # Connection, timeout, DNS
    PROVIDER = "PROVIDER"         # Upstream API answered with an error
    RATE_LIMIT = "RATE_LIMIT"     # Admission gate denied the request
    CIRCUIT = "CIRCUIT"           # Circuit breaker fast-fail
    QUEUE = "QUEUE"               # Submission queue unavailable
    VALIDATION = "VALIDATION"     # Bad input
    AUTH = "AUTH"                 # Missing or wrong credentials
    CONFIG = "CONFIG"             # Missing config, invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error for logging."""

    service: str | None = None
    stage: str | None = None
    submission_id: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["service", "stage", "submission_id", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class IntakeError(Exception):
    """Base exception for all intake-core errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    rarely have to pass them explicitly.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> IntakeError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Retryable)
# =============================================================================


class TransientError(IntakeError):
    """Temporary error that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Connection refused, DNS failure or connection reset."""


class TimeoutExpired(TransientError):
    """Raised when a provider call exceeds its per-call deadline."""

    def __init__(
        self,
        timeout: float,
        operation: str = "operation",
        elapsed: float | None = None,
        **kwargs: Any,
    ):
        self.timeout = timeout
        self.operation = operation
        self.elapsed = elapsed

        msg = f"Operation '{operation}' timed out after {timeout}s"
        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"
        super().__init__(msg, **kwargs)


# =============================================================================
# PROVIDER ERRORS
# =============================================================================


class ProviderError(IntakeError):
    """An external provider answered, but with an error.

    Retryable only for HTTP 5xx; 4xx means the request itself is wrong and
    repeating it cannot help.
    """

    default_category = ErrorCategory.PROVIDER

    def __init__(self, message: str, *, http_status: int | None = None, **kwargs: Any):
        if "retryable" not in kwargs or kwargs["retryable"] is None:
            kwargs["retryable"] = http_status is not None and 500 <= http_status < 600
        super().__init__(message, **kwargs)
        self.http_status = http_status
        self.context.http_status = http_status


# =============================================================================
# PIPELINE ERRORS
# =============================================================================


class AdmissionDeniedError(IntakeError):
    """Caller exceeded its submission quota. Correctable by waiting."""

    default_category = ErrorCategory.RATE_LIMIT

    def __init__(self, message: str = "Rate limit exceeded", *, retry_after: int = 1, **kwargs: Any):
        super().__init__(message, retry_after=retry_after, **kwargs)


class CircuitOpenError(IntakeError):
    """Raised when a circuit is open and the call was not attempted."""

    default_category = ErrorCategory.CIRCUIT

    def __init__(self, service: str, retry_after: int, **kwargs: Any):
        self.service = service
        super().__init__(
            f"circuit '{service}' open, retry in {retry_after} s",
            retry_after=retry_after,
            **kwargs,
        )
        self.context.service = service


class QueueFullError(IntakeError):
    """The submission queue is at capacity."""

    default_category = ErrorCategory.QUEUE


class ValidationError(IntakeError):
    """Input failed validation before any stage ran."""

    default_category = ErrorCategory.VALIDATION


class AuthenticationError(IntakeError):
    """Missing or invalid shared secret."""

    default_category = ErrorCategory.AUTH


class ConfigError(IntakeError):
    """A required setting is missing or invalid."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_TIMEOUT_MARKERS = ("timeout", "timed out")
_NETWORK_MARKERS = ("network", "econnrefused", "enotfound", "econnreset", "connection reset")


def is_retryable(error: BaseException) -> bool:
    """Default retry classification.

    Timeouts, network-level failures and HTTP 5xx are retryable. HTTP 4xx
    and everything else are not.
    """
    if isinstance(error, IntakeError):
        return error.retryable
    if isinstance(error, httpx.HTTPStatusError):
        return 500 <= error.response.status_code < 600
    if isinstance(error, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if isinstance(status, int):
        return 500 <= status < 600
    message = str(error).lower()
    if any(marker in message for marker in _TIMEOUT_MARKERS):
        return True
    return any(marker in message for marker in _NETWORK_MARKERS)


def get_retry_after(error: BaseException) -> int | None:
    """Get retry delay from error, if specified."""
    if isinstance(error, IntakeError):
        return error.retry_after
    return None


def error_message(error: BaseException) -> str:
    """Human-readable message for per-stage error maps."""
    if isinstance(error, IntakeError):
        return error.message
    return str(error) or error.__class__.__name__


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "IntakeError",
    "TransientError",
    "NetworkError",
    "TimeoutExpired",
    "ProviderError",
    "AdmissionDeniedError",
    "CircuitOpenError",
    "QueueFullError",
    "ValidationError",
    "AuthenticationError",
    "ConfigError",
    "is_retryable",
    "get_retry_after",
    "error_message",
]
