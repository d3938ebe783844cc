"""Tests for the retry executor."""

import httpx
import pytest
from conftest import FakeClock

from homelab_iso.builds.errors import (
    ComputeProvisionerError,
    RetriesExhaustedError,
    TransientInfrastructureError,
)
from homelab_iso.builds.retry import (
    RetryConfig,
    RetryExecutor,
    is_transient_error,
)
from homelab_iso.config import Settings


class Flaky:
    """Callable failing a fixed number of times before succeeding."""

    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or TransientInfrastructureError("try again")
        self.calls = 0

    async def __call__(self, value: str) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return value


def executor(clock: FakeClock, max_attempts: int = 4) -> RetryExecutor:
    config = RetryConfig(
        max_attempts=max_attempts,
        initial_delay=1.0,
        max_delay=30.0,
        exponential_base=2.0,
        jitter=0.0,
    )
    return RetryExecutor(config, sleep=clock.sleep)


class TestRetryExecutor:
    """Test RetryExecutor.call()."""

    @pytest.mark.asyncio
    async def test_success_needs_no_delay(self, clock) -> None:
        op = Flaky(0)
        assert await executor(clock).call(op, "ok") == "ok"
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_n_minus_one_transient_failures(self, clock) -> None:
        """N-1 transient failures should cost exactly N-1 delays."""
        op = Flaky(3)

        result = await executor(clock, max_attempts=4).call(op, "ok")

        assert result == "ok"
        assert op.calls == 4
        assert clock.sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_fails_immediately(self, clock) -> None:
        op = Flaky(1, ComputeProvisionerError("forbidden", status_code=403))

        with pytest.raises(ComputeProvisionerError):
            await executor(clock).call(op, "ok")

        assert op.calls == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_exhausted(self, clock) -> None:
        op = Flaky(10)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await executor(clock, max_attempts=3).call(op, "ok")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, TransientInfrastructureError)
        assert exc_info.value.code == "retries_exhausted"
        assert op.calls == 3
        assert len(clock.sleeps) == 2

    @pytest.mark.asyncio
    async def test_delay_is_capped(self, clock) -> None:
        config = RetryConfig(
            max_attempts=5, initial_delay=1.0, max_delay=3.0, jitter=0.0
        )
        op = Flaky(4)

        await RetryExecutor(config, sleep=clock.sleep).call(op, "ok")

        assert clock.sleeps == [1.0, 2.0, 3.0, 3.0]


class TestRetryConfig:
    """Test RetryConfig."""

    def test_invalid_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)

    def test_no_retry(self) -> None:
        assert RetryConfig.no_retry().max_attempts == 1

    def test_from_settings(self) -> None:
        settings = Settings(
            retry_max_attempts=7,
            retry_initial_delay_seconds=0.5,
            retry_max_delay_seconds=12.0,
            retry_exponential_base=3.0,
            retry_jitter_seconds=0.25,
        )
        config = RetryConfig.from_settings(settings)

        assert config.max_attempts == 7
        assert config.initial_delay == 0.5
        assert config.max_delay == 12.0
        assert config.exponential_base == 3.0
        assert config.jitter == 0.25


class TestIsTransientError:
    """Test transient error classification."""

    def _status_error(self, code: int) -> httpx.HTTPStatusError:
        request = httpx.Request("GET", "https://example.test/x")
        response = httpx.Response(code, request=request)
        return httpx.HTTPStatusError("error", request=request, response=response)

    def test_transient(self) -> None:
        request = httpx.Request("GET", "https://example.test/x")
        assert is_transient_error(TransientInfrastructureError("x"))
        assert is_transient_error(httpx.ConnectTimeout("x", request=request))
        assert is_transient_error(httpx.ConnectError("x", request=request))
        assert is_transient_error(httpx.RemoteProtocolError("x", request=request))
        assert is_transient_error(ConnectionResetError())
        assert is_transient_error(TimeoutError())
        for code in (408, 429, 500, 502, 503, 504):
            assert is_transient_error(self._status_error(code))

    def test_permanent(self) -> None:
        assert not is_transient_error(ValueError("x"))
        assert not is_transient_error(ComputeProvisionerError("x", status_code=400))
        for code in (400, 401, 403, 404, 409):
            assert not is_transient_error(self._status_error(code))
