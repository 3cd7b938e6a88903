"""
Bungie API Rate Limiter

Sliding-window admission control for outbound Bungie API requests.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from ....core.exceptions import AdmissionTimeoutError
from ....core.protocols import RateLimiterProtocol
from ....utils.datetime_utils import monotonic_ms

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter(RateLimiterProtocol):
    """
    Sliding-window rate limiter for the Bungie API.

    Admits at most `max_requests` calls within any trailing window of
    `window_ms` milliseconds. Callers that arrive while the window is full
    are suspended, never rejected, and are admitted in arrival order.

    A timestamp `t` is inside the window at time `now` while
    `now - t < window_ms`.
    """

    DEFAULT_MAX_REQUESTS = 25
    DEFAULT_WINDOW_MS = 10000

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: float = DEFAULT_WINDOW_MS,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Max admissions per window
            window_ms: Window length in milliseconds
            clock: Millisecond clock (defaults to the monotonic clock)
            sleep: Coroutine function taking seconds (defaults to asyncio.sleep)
        """
        if max_requests <= 0 or window_ms <= 0:
            raise ValueError("max_requests and window_ms must be positive")

        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock or monotonic_ms
        self._sleep = sleep or asyncio.sleep

        self._requests: Deque[float] = deque()
        # Held across the wait so queued callers keep their order
        self._lock = asyncio.Lock()
        # Callers inside admit(), including the lock holder
        self._waiting = 0

        # Statistics
        self.total_admitted = 0
        self.total_wait_ms = 0.0

    def _prune(self, now: float) -> None:
        """Drop admissions that have left the window."""
        while self._requests and now - self._requests[0] >= self.window_ms:
            self._requests.popleft()

    def _live(self, now: float) -> list:
        """Admissions still inside the window, without mutating state."""
        return [t for t in self._requests if now - t < self.window_ms]

    def _projected_wait_ms(self, now: float, ahead: int) -> float:
        """
        Wait for a caller queued behind `ahead` others.

        Assumes every caller ahead is admitted as early as the window
        allows, so the result is an upper bound.
        """
        admitted = self._live(now)
        at = now
        for _ in range(ahead + 1):
            if len(admitted) >= self.max_requests:
                at = max(at, admitted[-self.max_requests] + self.window_ms)
            admitted.append(at)
        return at - now

    def _timeout_error(self, wait_ms: float, timeout_ms: float) -> AdmissionTimeoutError:
        return AdmissionTimeoutError(
            f"Rate limit admission would take {wait_ms:.0f}ms, "
            f"longer than the {timeout_ms:.0f}ms allowed",
            wait_ms=wait_ms
        )

    async def admit(self, timeout_ms: Optional[float] = None) -> None:
        """
        Suspend until a call may proceed, then record its admission.

        The timeout covers the whole wait, including time spent queued
        behind earlier callers.

        Args:
            timeout_ms: Give up if admission needs a longer wait than this

        Raises:
            AdmissionTimeoutError: If the wait would exceed `timeout_ms`
        """
        start = self._clock()
        deadline = None

        if timeout_ms is not None:
            deadline = start + timeout_ms
            wait_ms = self._projected_wait_ms(start, self._waiting)
            if wait_ms > timeout_ms:
                raise self._timeout_error(wait_ms, timeout_ms)

        self._waiting += 1
        try:
            async with self._lock:
                while True:
                    now = self._clock()
                    self._prune(now)

                    if len(self._requests) < self.max_requests:
                        self._requests.append(now)
                        self.total_admitted += 1
                        self.total_wait_ms += now - start
                        return

                    wait_ms = self.window_ms - (now - self._requests[0])

                    if deadline is not None and now + wait_ms > deadline:
                        raise self._timeout_error(now + wait_ms - start, timeout_ms)

                    logger.debug(f"Rate limit window full, waiting {wait_ms:.0f}ms")
                    await self._sleep(wait_ms / 1000.0)
                    # Re-evaluated on the next iteration
        finally:
            self._waiting -= 1

    def remaining_requests(self) -> int:
        """Admission slots left in the current window."""
        live = self._live(self._clock())
        return max(0, self.max_requests - len(live))

    def reset_time_ms(self) -> float:
        """Milliseconds until the next slot frees (0 if one is free)."""
        now = self._clock()
        live = self._live(now)
        if len(live) < self.max_requests:
            return 0.0
        return max(0.0, self.window_ms - (now - live[0]))

    def get_status(self) -> Dict[str, Any]:
        """Get rate limiter status."""
        return {
            "max_requests": self.max_requests,
            "window_ms": self.window_ms,
            "remaining_requests": self.remaining_requests(),
            "reset_time_ms": self.reset_time_ms(),
            "total_admitted": self.total_admitted,
            "average_wait_ms": (
                self.total_wait_ms / self.total_admitted if self.total_admitted else 0.0
            )
        }

    def reset(self) -> None:
        """Reset rate limiter state."""
        self._requests.clear()
        self.total_admitted = 0
        self.total_wait_ms = 0.0
        logger.info("Rate limiter reset")
