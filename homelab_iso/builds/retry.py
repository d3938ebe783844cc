"""Retry executor for remote calls, built on tenacity.

Remote calls to the compute provisioner and the artifact store go
through RetryExecutor.call(). Only errors that is_transient_error()
accepts are retried, with exponential backoff and jitter; anything else
propagates on the first attempt. The sleep function is injectable so
tests can run backoff schedules without waiting.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from homelab_iso.builds.errors import (
    RetriesExhaustedError,
    TransientInfrastructureError,
)
from homelab_iso.clock import DEFAULT_CLOCK

if TYPE_CHECKING:
    from homelab_iso.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


def is_transient_error(exc: BaseException) -> bool:
    """Return True if a failed remote call is worth retrying."""
    if isinstance(exc, TransientInfrastructureError):
        return True
    if isinstance(
        exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)
    ):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUS_CODES
    return isinstance(exc, (ConnectionError, TimeoutError))


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    max_attempts is the total number of tries, so max_attempts=3 means
    one call and two retries.
    """

    max_attempts: int = 5
    initial_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    jitter: float = 0.5  # seconds

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @classmethod
    def no_retry(cls) -> RetryConfig:
        """Single attempt, no backoff."""
        return cls(max_attempts=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryConfig:
        """Build a RetryConfig from application settings."""
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
            exponential_base=settings.retry_exponential_base,
            jitter=settings.retry_jitter_seconds,
        )


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Transient failure on attempt %d (%s); retrying in %.1fs",
        retry_state.attempt_number,
        error,
        delay,
    )


class RetryExecutor:
    """Runs coroutines with retry on transient errors.

    Example:
        executor = RetryExecutor(RetryConfig(max_attempts=3))
        status = await executor.call(provisioner.get_state, handle)
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        is_retryable: Callable[[BaseException], bool] = is_transient_error,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep or DEFAULT_CLOCK.sleep
        self._is_retryable = is_retryable

    async def call(
        self, operation: Callable[..., Awaitable[T]], *args: object, **kwargs: object
    ) -> T:
        """Await ``operation(*args, **kwargs)`` with retry.

        Returns:
            The operation's result.

        Raises:
            RetriesExhaustedError: If every attempt failed transiently.
            Exception: The first non-transient error, unchanged.
        """
        config = self.config
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(config.max_attempts),
                wait=wait_exponential_jitter(
                    initial=config.initial_delay,
                    max=config.max_delay,
                    exp_base=config.exponential_base,
                    jitter=config.jitter,
                ),
                retry=retry_if_exception(self._is_retryable),
                sleep=self._sleep,
                before_sleep=_log_retry,
                reraise=False,
            ):
                with attempt:
                    return await operation(*args, **kwargs)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            assert last_error is not None, "RetryError without exception is impossible"
            attempts = e.last_attempt.attempt_number
            raise RetriesExhaustedError(attempts, last_error) from last_error

        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover


__all__ = [
    "TRANSIENT_STATUS_CODES",
    "RetryConfig",
    "RetryExecutor",
    "is_transient_error",
]
