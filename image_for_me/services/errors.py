"""
Error taxonomy for image-for-me.

Every failure raised inside a backend is normalized into a `ProviderError`
carrying a stable code, a severity, a retryability flag and a message that is
safe to show to end users. `is_retryable_code` is the single retry policy
consulted by the resilience wrapper and the orchestrator.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from .logging_config import log_event

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Error codes used throughout the application."""

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    PROVIDER_NOT_CONFIGURED = "PROVIDER_NOT_CONFIGURED"

    # Backend errors
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"

    # Request errors
    INVALID_REQUEST = "INVALID_REQUEST"
    CONTENT_POLICY_VIOLATION = "CONTENT_POLICY_VIOLATION"

    # Processing errors
    GENERATION_FAILED = "GENERATION_FAILED"
    DESCRIPTION_FAILED = "DESCRIPTION_FAILED"
    TAGGING_FAILED = "TAGGING_FAILED"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"

    # Transport errors
    TIMEOUT = "TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"

    # Feature support
    FEATURE_NOT_AVAILABLE = "FEATURE_NOT_AVAILABLE"

    # Catch-all
    OPERATION_FAILED = "OPERATION_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


RETRYABLE_CODES = frozenset(
    {
        ErrorCode.TIMEOUT,
        ErrorCode.SERVICE_UNAVAILABLE,
        ErrorCode.NETWORK_ERROR,
        ErrorCode.RATE_LIMIT_EXCEEDED,
    }
)

# Errors caused by the request itself; another backend would reject it too
REQUEST_ERROR_CODES = frozenset(
    {
        ErrorCode.INVALID_REQUEST,
        ErrorCode.VALIDATION_FAILED,
        ErrorCode.CONTENT_POLICY_VIOLATION,
    }
)

DEFAULT_SEVERITIES = {
    ErrorCode.AUTHENTICATION_FAILED: ErrorSeverity.CRITICAL,
    ErrorCode.PERMISSION_DENIED: ErrorSeverity.HIGH,
    ErrorCode.QUOTA_EXCEEDED: ErrorSeverity.HIGH,
    ErrorCode.NETWORK_ERROR: ErrorSeverity.HIGH,
    ErrorCode.CONFIGURATION_ERROR: ErrorSeverity.HIGH,
    ErrorCode.PROVIDER_NOT_CONFIGURED: ErrorSeverity.HIGH,
    ErrorCode.INVALID_REQUEST: ErrorSeverity.LOW,
    ErrorCode.CONTENT_POLICY_VIOLATION: ErrorSeverity.LOW,
    ErrorCode.VALIDATION_FAILED: ErrorSeverity.LOW,
}

USER_MESSAGES = {
    ErrorCode.AUTHENTICATION_FAILED: "Invalid API key. Please check your configuration.",
    ErrorCode.PERMISSION_DENIED: "Access denied by the image service. Please check your account permissions.",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests. Please wait a moment and try again.",
    ErrorCode.QUOTA_EXCEEDED: "API quota exceeded. Please check your account limits.",
    ErrorCode.CONTENT_POLICY_VIOLATION: "The request violates content policy. Please modify your prompt.",
    ErrorCode.TIMEOUT: "Request timed out. Please try again.",
    ErrorCode.SERVICE_UNAVAILABLE: "Service temporarily unavailable. Please try again later.",
    ErrorCode.NETWORK_ERROR: "Could not reach the image service. Please check your connection.",
    ErrorCode.INVALID_REQUEST: "Invalid request parameters. Please check your input.",
    ErrorCode.GENERATION_FAILED: "Image generation failed. Please try again with a different prompt.",
    ErrorCode.DESCRIPTION_FAILED: "Image description failed. Please check the image URL.",
    ErrorCode.TAGGING_FAILED: "Image tagging failed. Please check the image URL.",
    ErrorCode.DOWNLOAD_FAILED: "Failed to download image. Please check the URL.",
    ErrorCode.FEATURE_NOT_AVAILABLE: "This feature is not available with current configuration.",
}

# OpenAI-style error codes found in JSON error bodies
_BODY_CODE_MAP = {
    "content_policy_violation": ErrorCode.CONTENT_POLICY_VIOLATION,
    "insufficient_quota": ErrorCode.QUOTA_EXCEEDED,
    "rate_limit_exceeded": ErrorCode.RATE_LIMIT_EXCEEDED,
    "invalid_request_error": ErrorCode.INVALID_REQUEST,
    "model_not_found": ErrorCode.FEATURE_NOT_AVAILABLE,
}

_STATUS_CODE_MAP = {
    400: ErrorCode.INVALID_REQUEST,
    401: ErrorCode.AUTHENTICATION_FAILED,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.INVALID_REQUEST,
    413: ErrorCode.INVALID_REQUEST,
    422: ErrorCode.INVALID_REQUEST,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
    500: ErrorCode.SERVICE_UNAVAILABLE,
    502: ErrorCode.SERVICE_UNAVAILABLE,
    503: ErrorCode.SERVICE_UNAVAILABLE,
    504: ErrorCode.SERVICE_UNAVAILABLE,
}


def is_retryable_code(code: ErrorCode | str) -> bool:
    """Return whether errors with this code are worth retrying."""
    try:
        return ErrorCode(code) in RETRYABLE_CODES
    except ValueError:
        return False


def default_severity(code: ErrorCode | str) -> ErrorSeverity:
    try:
        return DEFAULT_SEVERITIES.get(ErrorCode(code), ErrorSeverity.MEDIUM)
    except ValueError:
        return ErrorSeverity.MEDIUM


def user_message_for(code: ErrorCode | str, fallback: str) -> str:
    """Stable, non-leaking message for a code; unmapped codes fall back to the raw message."""
    try:
        return USER_MESSAGES.get(ErrorCode(code), fallback)
    except ValueError:
        return fallback


class ProviderError(Exception):
    """A classified failure from a backend or from request validation."""

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        backend_name: str = "system",
        *,
        severity: ErrorSeverity | None = None,
        retryable: bool | None = None,
        user_message: str | None = None,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        try:
            self.code: ErrorCode | str = ErrorCode(code)
        except ValueError:
            self.code = code
        self.message = message
        self.backend_name = backend_name
        self.severity = severity or default_severity(self.code)
        self.retryable = is_retryable_code(self.code) if retryable is None else retryable
        self.user_message = user_message or user_message_for(self.code, message)
        self.request_id = request_id
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    @property
    def code_value(self) -> str:
        return self.code.value if isinstance(self.code, ErrorCode) else str(self.code)

    def __repr__(self) -> str:
        return f"ProviderError(code={self.code_value!r}, backend={self.backend_name!r}, message={self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and serialization."""
        return {
            "code": self.code_value,
            "message": self.message,
            "user_message": self.user_message,
            "backend_name": self.backend_name,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "timestamp": self.timestamp.isoformat(),
            "request_id": self.request_id,
            "details": self.details,
        }


def _code_from_body(response: httpx.Response) -> ErrorCode | None:
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    candidates: list[Any] = []
    if isinstance(error, dict):
        candidates.extend([error.get("code"), error.get("type")])
    elif isinstance(error, str):
        # Hugging Face returns {"error": "Model ... is currently loading"}
        if "loading" in error.lower():
            return ErrorCode.SERVICE_UNAVAILABLE
    for candidate in candidates:
        if isinstance(candidate, str) and candidate in _BODY_CODE_MAP:
            return _BODY_CODE_MAP[candidate]
    return None


def _status_of(error: BaseException) -> int | None:
    """Status code from SDK errors that carry one (google-genai APIError uses `code`)."""
    for attr in ("status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and 100 <= value < 600:
            return value
    return None


def classify_error(
    error: BaseException,
    backend_name: str = "system",
    request_id: str | None = None,
    default_code: ErrorCode = ErrorCode.OPERATION_FAILED,
) -> ProviderError:
    """Normalize any exception into a ProviderError."""
    if isinstance(error, ProviderError):
        if error.backend_name == "system" and backend_name != "system":
            error.backend_name = backend_name
        if error.request_id is None:
            error.request_id = request_id
        return error

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return ProviderError(
            ErrorCode.TIMEOUT,
            f"Request to {backend_name} timed out",
            backend_name,
            request_id=request_id,
            details={"original_error": repr(error)},
        )

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        code = _code_from_body(error.response) or _STATUS_CODE_MAP.get(status, default_code)
        return ProviderError(
            code,
            f"{backend_name} API error ({status}): {error.response.text[:500]}",
            backend_name,
            request_id=request_id,
            details={"status_code": status},
        )

    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ProviderError(
            ErrorCode.NETWORK_ERROR,
            f"Network connection to {backend_name} failed: {error}",
            backend_name,
            request_id=request_id,
            details={"original_error": repr(error)},
        )

    if isinstance(error, ValidationError):
        return validation_error(str(error), {"errors": error.errors()}, request_id)

    status = _status_of(error)
    if status is not None and status in _STATUS_CODE_MAP:
        return ProviderError(
            _STATUS_CODE_MAP[status],
            f"{backend_name} API error ({status}): {error}",
            backend_name,
            request_id=request_id,
            details={"status_code": status},
        )

    return ProviderError(
        default_code,
        str(error) or "Unknown error occurred",
        backend_name,
        severity=ErrorSeverity.MEDIUM,
        request_id=request_id,
        details={"original_error": repr(error)},
    )


def log_provider_error(error: ProviderError) -> None:
    """Log an error at a level matching its severity."""
    level = {
        ErrorSeverity.CRITICAL: logging.CRITICAL,
        ErrorSeverity.HIGH: logging.ERROR,
        ErrorSeverity.MEDIUM: logging.WARNING,
        ErrorSeverity.LOW: logging.INFO,
    }[error.severity]
    logger.log(
        level,
        "%s error from %s: %s (retryable=%s, request_id=%s)",
        error.code_value,
        error.backend_name,
        error.message,
        error.retryable,
        error.request_id,
    )
    log_event("provider_error", **error.to_dict())


def validation_error(
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> ProviderError:
    return ProviderError(
        ErrorCode.VALIDATION_FAILED,
        message,
        "system",
        severity=ErrorSeverity.LOW,
        retryable=False,
        details=details,
        request_id=request_id,
    )


def timeout_error(
    operation: str,
    timeout: float,
    backend_name: str = "system",
    request_id: str | None = None,
) -> ProviderError:
    return ProviderError(
        ErrorCode.TIMEOUT,
        f"{operation} timed out after {timeout:g}s",
        backend_name,
        request_id=request_id,
        details={"operation": operation, "timeout": timeout},
    )
