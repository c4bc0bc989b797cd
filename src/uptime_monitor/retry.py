"""
Retry policy for probes and report submission.

Computes exponential backoff durations and decides whether a failed
attempt is worth repeating.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import aiohttp


# Status codes that indicate a transient server-side condition
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Error message fragments that mark a transport error as non-transient
NON_TRANSIENT_ERROR_MARKERS = (
    "marshal",
    "serializ",
    "invalid",
    "cancelled",
    "canceled",
)

# Exception types that are never worth retrying
TERMINAL_EXCEPTIONS = (
    asyncio.CancelledError,
    aiohttp.TooManyRedirects,
    aiohttp.InvalidURL,
)


def is_retryable(error: Optional[BaseException], status_code: int = 0) -> bool:
    """
    Decide whether a failed attempt should be retried.

    A transport error is retryable unless its type or message marks it as
    non-transient (malformed payload, invalid request, cancellation,
    redirect limit). Without a transport error only RETRYABLE_STATUS_CODES
    are retried.

    Args:
        error: Transport-level exception, or None if a response was received
        status_code: HTTP status code of the response (0 if none)

    Returns:
        True if another attempt may succeed
    """
    if error is not None:
        if isinstance(error, TERMINAL_EXCEPTIONS):
            return False
        message = str(error).lower()
        if any(marker in message for marker in NON_TRANSIENT_ERROR_MARKERS):
            return False
        return True

    return status_code in RETRYABLE_STATUS_CODES


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff configuration.

    Attributes:
        max_retries: Retries after the first attempt
        initial_backoff: Delay before the first retry, in seconds
        max_backoff: Upper bound for any single delay, in seconds
        backoff_multiplier: Growth factor between consecutive delays
    """
    max_retries: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    backoff_multiplier: float = 2.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ValueError("Backoff durations must not be negative")
        if self.backoff_multiplier < 1:
            raise ValueError(f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Backoff before retrying after the given 0-based attempt.

        Args:
            attempt: Index of the attempt that just failed

        Returns:
            initial_backoff * backoff_multiplier ** attempt, capped at max_backoff
        """
        try:
            backoff = self.initial_backoff * (self.backoff_multiplier ** attempt)
        except OverflowError:
            return self.max_backoff
        return min(backoff, self.max_backoff)

    def should_retry(self, attempt: int, error: Optional[BaseException], status_code: int = 0) -> bool:
        """True if the failure is retryable and attempts remain after `attempt`."""
        return attempt < self.max_retries and is_retryable(error, status_code)
