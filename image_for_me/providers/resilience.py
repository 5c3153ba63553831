"""
Retry-with-timeout executor shared by every backend.

Each attempt is bounded by `asyncio.wait_for`, which cancels the attempt's
task on expiry. Work that ignores cancellation (SDK calls running in an
executor thread) finishes in the background and its result is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..config.constants import DEFAULT_RETRY_BASE_DELAY, DEFAULT_TIMEOUT, MAX_RETRIES
from ..services.errors import ErrorCode, ProviderError, classify_error, timeout_error
from ..services.logging_config import log_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExecutor:
    """
    Runs one backend operation with a per-attempt timeout and bounded retries.

    Retryability is decided only by the error taxonomy: non-retryable errors
    are raised after the first attempt, retryable ones are retried with
    exponential backoff (`base_delay * 2 ** (attempt - 1)`, no jitter).
    """

    def __init__(
        self,
        backend_name: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = MAX_RETRIES,
        base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backend_name = backend_name
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def backoff_delay(self, attempt: int, base_delay: float | None = None) -> float:
        """Delay before the retry that follows `attempt` (1-indexed)."""
        base = self.base_delay if base_delay is None else base_delay
        return base * (2 ** (attempt - 1))

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        *,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        request_id: str | None = None,
    ) -> T:
        """
        Run `operation` until it succeeds, fails non-retryably, or attempts run out.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            operation_name: Human-readable name used in logs and error messages
            max_attempts: Override for the executor's attempt cap
            base_delay: Override for the executor's base backoff delay (seconds)
            request_id: Correlation id attached to raised errors

        Returns:
            The operation's result

        Raises:
            ProviderError: The first non-retryable error, or OPERATION_FAILED
                wrapping the last error once attempts are exhausted
        """
        attempts = max_attempts or self.max_attempts
        last_error: ProviderError | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(operation(), timeout=self.timeout)
            except asyncio.TimeoutError:
                last_error = timeout_error(
                    operation_name, self.timeout, self.backend_name, request_id
                )
            except Exception as e:
                last_error = classify_error(e, self.backend_name, request_id)

            if not last_error.retryable:
                raise last_error

            if attempt < attempts:
                delay = self.backoff_delay(attempt, base_delay)
                logger.warning(
                    "%s %s attempt %d/%d failed (%s), retrying in %.2fs",
                    self.backend_name,
                    operation_name,
                    attempt,
                    attempts,
                    last_error.code_value,
                    delay,
                )
                log_event(
                    "retry_scheduled",
                    backend=self.backend_name,
                    operation=operation_name,
                    attempt=attempt,
                    delay_seconds=delay,
                    error_code=last_error.code_value,
                    request_id=request_id,
                )
                await self._sleep(delay)

        raise ProviderError(
            ErrorCode.OPERATION_FAILED,
            f"Failed to {operation_name} after {attempts} attempts",
            self.backend_name,
            request_id=request_id,
            details={"last_error": last_error.to_dict() if last_error else None},
        )
