"""Token bucket rate limiter shared by every request in a run."""

import asyncio
import logging
import threading
import time
from typing import Callable, Optional

from .errors import RateLimiterCancelled

logger = logging.getLogger(__name__)


class TokenBucketRateLimiter:
    """
    Token bucket with continuous refill.

    Tokens accrue at `rate` per second up to `burst`. Each acquire reserves
    one token; when the bucket is empty the reservation drives the balance
    negative and the caller sleeps until its token has accrued, so waiters
    are spaced evenly instead of waking together at a window boundary.
    """

    def __init__(
        self,
        rate: float = 10.0,
        burst: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            rate: Sustained tokens per second
            burst: Bucket capacity
            clock: Monotonic time source in seconds
        """
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")

        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last_refill = clock()
        self._lock = threading.Lock()

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill(self._clock())
            return self._tokens

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
            self._last_refill = now

    def _reserve(self, deadline: Optional[float]) -> float:
        """Reserve one token and return how long the caller must wait for it."""
        with self._lock:
            now = self._clock()
            self._refill(now)

            if self._tokens >= 1:
                self._tokens -= 1
                return 0.0

            wait = (1 - self._tokens) / self.rate
            if deadline is not None and now + wait > deadline:
                raise RateLimiterCancelled(
                    f"token wait of {wait:.3f}s would exceed the run deadline"
                )

            self._tokens -= 1
            return wait

    def _cancel_reservation(self) -> None:
        with self._lock:
            self._refill(self._clock())
            self._tokens = min(float(self.burst), self._tokens + 1)

    async def acquire(self, deadline: Optional[float] = None) -> None:
        """
        Wait until a token is available.

        Args:
            deadline: Absolute time (same clock as the limiter) after which
                the caller gives up; None waits as long as needed

        Raises:
            RateLimiterCancelled: If the token would not be available before deadline
        """
        wait = self._reserve(deadline)
        if wait <= 0:
            return

        logger.debug(f"Rate limit reached, waiting {wait:.3f}s for a token")
        try:
            await asyncio.sleep(wait)
        except asyncio.CancelledError:
            self._cancel_reservation()
            raise
