"""Clock abstraction for testable polling, stall and timeout logic.

Production code uses SystemClock. Tests inject a fake clock whose
sleep() advances time instantly, so multi-hour build timelines run in
milliseconds.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Abstract clock used by the orchestrator and retry executor."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds.

        Must never go backwards; used for elapsed time, stall and
        timeout calculations.
        """
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for the given number of seconds.

        This is the cancellation point of every polling loop.
        """
        ...


class SystemClock:
    """Production clock backed by time.monotonic() and asyncio.sleep()."""

    def monotonic(self) -> float:
        """Return system monotonic time."""
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        """Sleep on the running event loop."""
        await asyncio.sleep(seconds)


DEFAULT_CLOCK: Clock = SystemClock()

__all__ = ["DEFAULT_CLOCK", "Clock", "SystemClock"]
