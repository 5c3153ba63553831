"""Tests for the retry-with-timeout executor."""

import asyncio

import pytest

from image_for_me.providers.resilience import RetryExecutor
from image_for_me.services.errors import ErrorCode, ProviderError


class Recorder:
    def __init__(self):
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)


def failing(code: ErrorCode, calls: list, succeed_after: int | None = None):
    async def operation():
        calls.append(1)
        if succeed_after is not None and len(calls) > succeed_after:
            return "ok"
        raise ProviderError(code, f"{code.value} failure", "openai")

    return operation


class TestRetryExecutor:
    """Tests for retry bounds and backoff."""

    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        executor = RetryExecutor("openai", sleep=Recorder().sleep)

        async def operation():
            return 42

        assert await executor.execute(operation, "generate image") == 42

    @pytest.mark.asyncio
    async def test_retryable_error_exhausts_attempts_with_exponential_delays(self):
        recorder = Recorder()
        executor = RetryExecutor("openai", max_attempts=3, base_delay=1.0, sleep=recorder.sleep)
        calls: list = []

        with pytest.raises(ProviderError) as excinfo:
            await executor.execute(failing(ErrorCode.SERVICE_UNAVAILABLE, calls), "generate image")

        assert len(calls) == 3
        assert recorder.delays == [1.0, 2.0]
        assert excinfo.value.code == ErrorCode.OPERATION_FAILED
        assert excinfo.value.details["last_error"]["code"] == "SERVICE_UNAVAILABLE"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code",
        [
            ErrorCode.AUTHENTICATION_FAILED,
            ErrorCode.INVALID_REQUEST,
            ErrorCode.CONTENT_POLICY_VIOLATION,
        ],
    )
    async def test_non_retryable_error_short_circuits(self, code):
        recorder = Recorder()
        executor = RetryExecutor("openai", max_attempts=5, sleep=recorder.sleep)
        calls: list = []

        with pytest.raises(ProviderError) as excinfo:
            await executor.execute(failing(code, calls), "generate image")

        assert len(calls) == 1
        assert recorder.delays == []
        assert excinfo.value.code == code

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self):
        recorder = Recorder()
        executor = RetryExecutor("openai", max_attempts=3, base_delay=0.5, sleep=recorder.sleep)
        calls: list = []

        result = await executor.execute(
            failing(ErrorCode.RATE_LIMIT_EXCEEDED, calls, succeed_after=2), "generate image"
        )

        assert result == "ok"
        assert len(calls) == 3
        assert recorder.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_per_call_overrides(self):
        recorder = Recorder()
        executor = RetryExecutor("openai", max_attempts=3, base_delay=1.0, sleep=recorder.sleep)
        calls: list = []

        with pytest.raises(ProviderError):
            await executor.execute(
                failing(ErrorCode.NETWORK_ERROR, calls),
                "describe image",
                max_attempts=4,
                base_delay=0.25,
            )

        assert len(calls) == 4
        assert recorder.delays == [0.25, 0.5, 1.0]

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_retryable(self):
        recorder = Recorder()
        executor = RetryExecutor("gemini", timeout=0.01, max_attempts=2, sleep=recorder.sleep)

        async def operation():
            await asyncio.sleep(1)

        with pytest.raises(ProviderError) as excinfo:
            await executor.execute(operation, "generate image", request_id="req-1")

        assert recorder.delays == [1.0]
        assert excinfo.value.code == ErrorCode.OPERATION_FAILED
        assert excinfo.value.request_id == "req-1"
        assert excinfo.value.details["last_error"]["code"] == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_raw_exceptions_are_classified(self):
        executor = RetryExecutor("openai", sleep=Recorder().sleep)

        async def operation():
            raise ValueError("unexpected")

        with pytest.raises(ProviderError) as excinfo:
            await executor.execute(operation, "generate image")

        assert excinfo.value.code == ErrorCode.OPERATION_FAILED
        assert excinfo.value.backend_name == "openai"

    def test_backoff_delay(self):
        executor = RetryExecutor("openai", base_delay=2.0)
        assert [executor.backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryExecutor("openai", max_attempts=0)
