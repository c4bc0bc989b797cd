"""Submission of monitor reports to a remote collector API."""

import asyncio
import logging
import time
from typing import Optional, Tuple

import aiohttp

from ..errors import RateLimiterCancelled, ReportDeliveryError
from ..models import MonitorReport
from ..rate_limiter import TokenBucketRateLimiter
from ..retry import RetryPolicy, is_retryable

logger = logging.getLogger(__name__)


class ReportSubmitter:
    """
    POSTs reports as JSON with bearer-token authentication.

    Transport errors and 429/5xx responses are retried with the same
    RetryPolicy the probes use; other error statuses fail immediately.
    """

    CHANNEL = "api"

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        user_agent: str = "",
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.user_agent = user_agent
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.rate_limiter = rate_limiter or TokenBucketRateLimiter()
        self.session = session

    def _headers(self) -> dict:
        headers = {'Content-Type': 'application/json'}
        if self.user_agent:
            headers['User-Agent'] = self.user_agent
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"
        return headers

    async def submit(self, report: MonitorReport, deadline: Optional[float] = None) -> None:
        """
        Submit a report, retrying transient failures.

        Args:
            report: Report to submit
            deadline: Absolute time.monotonic() value after which no further
                attempt is made; None retries for as long as the policy allows

        Raises:
            ReportDeliveryError: If no API URL is configured, the report is
                rejected, every attempt fails, or the deadline passes
        """
        if not self.api_url:
            raise ReportDeliveryError(self.CHANNEL, "failed to provide backend url")

        payload = report.to_json()
        last_error = "no attempt made"

        for attempt in range(self.retry_policy.max_attempts):
            try:
                await self.rate_limiter.acquire(deadline)
            except RateLimiterCancelled as e:
                raise ReportDeliveryError(self.CHANNEL, f"rate limiter error: {e}") from e

            try:
                status, body = await self._post(payload, self._attempt_timeout(deadline))
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = f"failed to submit to API: {str(e) or type(e).__name__}"
                retryable = is_retryable(e)
            else:
                if status < 400:
                    logger.info(f"Report submitted to {self.api_url} (HTTP {status})")
                    return
                last_error = f"API submission failed with status {status}: {body}"
                retryable = is_retryable(None, status)

            if not retryable:
                raise ReportDeliveryError(self.CHANNEL, last_error)

            if attempt < self.retry_policy.max_retries:
                backoff = self.retry_policy.calculate_backoff(attempt)
                if deadline is not None and time.monotonic() + backoff >= deadline:
                    raise ReportDeliveryError(
                        self.CHANNEL,
                        f"run deadline exceeded before retry {attempt + 2}: {last_error}",
                    )
                logger.warning(f"API submission attempt {attempt + 1} failed, retrying in {backoff:.2f}s: {last_error}")
                await asyncio.sleep(backoff)

        raise ReportDeliveryError(
            self.CHANNEL,
            f"API submission failed after {self.retry_policy.max_attempts} attempts: {last_error}",
        )

    def _attempt_timeout(self, deadline: Optional[float]) -> float:
        """Request timeout clipped to the time left before deadline."""
        if deadline is None:
            return self.timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ReportDeliveryError(self.CHANNEL, "run deadline exceeded before submission")
        return min(self.timeout, remaining)

    async def _post(self, payload: str, timeout_seconds: Optional[float] = None) -> Tuple[int, str]:
        """Send one POST and return (status, body text)."""
        timeout = aiohttp.ClientTimeout(total=timeout_seconds or self.timeout)
        if self.session is not None:
            return await self._post_with(self.session, payload, timeout)
        async with aiohttp.ClientSession() as session:
            return await self._post_with(session, payload, timeout)

    async def _post_with(self, session: aiohttp.ClientSession, payload: str, timeout: aiohttp.ClientTimeout) -> Tuple[int, str]:
        async with session.post(self.api_url, data=payload, headers=self._headers(), timeout=timeout) as response:
            body = await response.text()
            return response.status, body
