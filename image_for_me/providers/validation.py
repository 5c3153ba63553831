"""
Request validation and prompt sanitization shared by all backends.

Validation runs before any network call so invalid requests fail fast with a
non-retryable INVALID_REQUEST error.
"""

import re

from ..config.constants import (
    MAX_ASPECT_RATIO,
    MAX_DIMENSION,
    MAX_IMAGE_COUNT,
    MAX_NEGATIVE_PROMPT_LENGTH,
    MAX_PROMPT_LENGTH,
    MIN_ASPECT_RATIO,
    MIN_DIMENSION,
    MIN_IMAGE_COUNT,
    UNSAFE_PROMPT_PATTERNS,
)
from ..models.domain import GenerationRequest
from ..services.errors import ErrorCode, ErrorSeverity, ProviderError

_UNSAFE_PATTERNS = [re.compile(pattern, re.IGNORECASE) for pattern in UNSAFE_PROMPT_PATTERNS]
_WHITESPACE = re.compile(r"\s+")


def _invalid(message: str, backend_name: str, request_id: str | None) -> ProviderError:
    return ProviderError(
        ErrorCode.INVALID_REQUEST,
        message,
        backend_name,
        severity=ErrorSeverity.LOW,
        retryable=False,
        request_id=request_id,
    )


def validate_request(
    request: GenerationRequest,
    backend_name: str = "system",
    request_id: str | None = None,
) -> None:
    """
    Check a generation request against the shared limits.

    Raises:
        ProviderError: INVALID_REQUEST describing the first violated limit
    """
    if not request.prompt or not request.prompt.strip():
        raise _invalid("Prompt is required", backend_name, request_id)

    if not sanitize_prompt(request.prompt):
        raise _invalid(
            "Prompt contains only disallowed terms; describe the image you want",
            backend_name,
            request_id,
        )

    if len(request.prompt) > MAX_PROMPT_LENGTH:
        raise _invalid(
            f"Prompt is too long (max {MAX_PROMPT_LENGTH} characters)", backend_name, request_id
        )

    if not MIN_IMAGE_COUNT <= request.count <= MAX_IMAGE_COUNT:
        raise _invalid(
            f"Count must be between {MIN_IMAGE_COUNT} and {MAX_IMAGE_COUNT}",
            backend_name,
            request_id,
        )

    if request.dimensions is not None:
        width, height = request.dimensions.width, request.dimensions.height
        if not (
            MIN_DIMENSION <= width <= MAX_DIMENSION and MIN_DIMENSION <= height <= MAX_DIMENSION
        ):
            raise _invalid(
                f"Dimensions must be between {MIN_DIMENSION}x{MIN_DIMENSION} "
                f"and {MAX_DIMENSION}x{MAX_DIMENSION}",
                backend_name,
                request_id,
            )

        aspect_ratio = width / height
        if not MIN_ASPECT_RATIO <= aspect_ratio <= MAX_ASPECT_RATIO:
            raise _invalid(
                "Invalid aspect ratio (must be between 1:4 and 4:1)", backend_name, request_id
            )

    if request.negative_prompt and len(request.negative_prompt) > MAX_NEGATIVE_PROMPT_LENGTH:
        raise _invalid(
            f"Negative prompt is too long (max {MAX_NEGATIVE_PROMPT_LENGTH} characters)",
            backend_name,
            request_id,
        )


def sanitize_prompt(prompt: str) -> str:
    """
    Collapse whitespace and strip denylisted keywords.

    Best-effort filtering only; backends still apply their own content policy.
    """
    sanitized = _WHITESPACE.sub(" ", prompt.strip())
    for pattern in _UNSAFE_PATTERNS:
        sanitized = pattern.sub("", sanitized)
    return _WHITESPACE.sub(" ", sanitized).strip()
