"""
HTTP/HTTPS availability checker for uptime monitoring.

Probes a domain with GET requests, applying the shared rate limiter and
the retry policy, and classifies the outcome as up, degraded or down.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import aiohttp

from .base_checker import BaseChecker
from .ssl import get_peer_certificate, parse_certificate
from ..errors import ErrorType, RateLimiterCancelled, categorize_exception
from ..events import CheckObserver
from ..models import (
    HealthCheckResult,
    STATUS_DOWN,
    determine_status,
    normalize_url,
    sanitize_string,
)
from ..rate_limiter import TokenBucketRateLimiter
from ..retry import RetryPolicy

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = "Monitoring Client/1.0"
DEFAULT_TIMEOUT = 30.0
MAX_REDIRECTS = 10

# Timers may fire marginally before the deadline they were clipped to
DEADLINE_SLACK = 0.01

_DRAIN_CHUNK_SIZE = 64 * 1024


@dataclass
class ProbeResponse:
    """What a single GET request observed."""
    status_code: int
    content_length: int
    final_url: str
    cert_der: Optional[bytes] = None


def create_session(user_agent: str = DEFAULT_USER_AGENT) -> aiohttp.ClientSession:
    """Create the pooled client session used for one run."""
    connector = aiohttp.TCPConnector(limit=100, limit_per_host=10)
    return aiohttp.ClientSession(
        connector=connector,
        headers={'User-Agent': user_agent},
    )


class DomainChecker(BaseChecker):
    """
    Checker for HTTP/HTTPS availability of a single domain.

    Every attempt waits on the shared rate limiter, issues one GET request
    and maps the response to a health status. Transient failures are retried
    with exponential backoff until the retry policy or the run deadline says
    stop. Use as an async context manager, or pass in a session owned by the
    caller.
    """

    def __init__(
        self,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None,
        observer: Optional[CheckObserver] = None,
        max_redirects: int = MAX_REDIRECTS,
    ):
        super().__init__(timeout=timeout, observer=observer)
        self.rate_limiter = rate_limiter or TokenBucketRateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.user_agent = user_agent
        self.max_redirects = max_redirects
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> 'DomainChecker':
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def open(self) -> None:
        """Create a client session unless one was supplied."""
        if self._session is None or self._session.closed:
            self._session = create_session(self.user_agent)
            self._owns_session = True

    async def close(self) -> None:
        """Close the client session if this checker created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
        self._owns_session = False

    async def check(self, domain: str, deadline: Optional[float] = None) -> HealthCheckResult:
        """
        Probe a domain until it is up, fails terminally, or retries run out.

        Args:
            domain: Bare hostname or full URL
            deadline: Absolute time.monotonic() value for the whole run

        Returns:
            The last attempt's HealthCheckResult
        """
        logger.debug(f"Starting HTTP check for domain: {domain}")
        result = await self._check_with_retries(domain, deadline)
        self.observer.probe_completed(result)
        return result

    async def _check_with_retries(self, domain: str, deadline: Optional[float]) -> HealthCheckResult:
        url = normalize_url(domain)
        last_result: Optional[HealthCheckResult] = None

        for attempt in range(self.retry_policy.max_attempts):
            attempts = attempt + 1

            try:
                await self.rate_limiter.acquire(deadline)
            except RateLimiterCancelled as e:
                logger.debug(f"Rate limiter gave up for {domain}: {e}")
                return self._create_result(
                    domain,
                    url=url,
                    error_message=f"Rate limiter error: {e}",
                    error_type=ErrorType.RATE_LIMITER_CANCELLED,
                    attempts=attempts,
                )

            if self._deadline_passed(deadline):
                return self._deadline_result(domain, url, attempts, "before request")

            started_at = datetime.now(timezone.utc)
            timeout = self._request_timeout(deadline)
            request_start = time.monotonic()

            try:
                response = await self._make_request(url, timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                elapsed_ms = int((time.monotonic() - request_start) * 1000)
                last_result = self._transport_failure(
                    domain, url, e, timeout, elapsed_ms, attempts, started_at
                )

                if self._deadline_passed(deadline) or (
                    timeout < self.timeout and isinstance(e, asyncio.TimeoutError)
                ):
                    return self._deadline_result(
                        domain, url, attempts, "during request",
                        started_at=started_at, response_time_ms=elapsed_ms
                    )

                if not self.retry_policy.should_retry(attempt, e):
                    if attempts == self.retry_policy.max_attempts:
                        logger.warning(f"Max retries reached for {domain} after {attempts} attempt(s)")
                    return last_result

                if not await self._backoff(domain, attempt, last_result.error_message, deadline):
                    return self._deadline_result(
                        domain, url, attempts, "during retry backoff",
                        started_at=started_at, response_time_ms=elapsed_ms
                    )
                continue

            elapsed_ms = int((time.monotonic() - request_start) * 1000)
            last_result = self._response_result(
                domain, url, response, elapsed_ms, attempts, started_at
            )

            if last_result.is_up:
                return last_result

            if not self.retry_policy.should_retry(attempt, None, last_result.status_code):
                return last_result

            reason = f"HTTP {last_result.status_code}"
            if not await self._backoff(domain, attempt, reason, deadline):
                return self._deadline_result(
                    domain, url, attempts, "during retry backoff",
                    started_at=started_at,
                    status_code=last_result.status_code,
                    response_time_ms=elapsed_ms,
                )

        return last_result

    async def _make_request(self, url: str, timeout: float) -> ProbeResponse:
        """
        Send one GET request and drain the response body.

        Redirects are followed up to max_redirects; the peer certificate is
        captured before the connection is released.

        Args:
            url: The URL to request
            timeout: Total timeout for the request in seconds

        Returns:
            ProbeResponse for the final response

        Raises:
            aiohttp.ClientError: If the request fails
            asyncio.TimeoutError: If the request times out
        """
        self.open()
        client_timeout = aiohttp.ClientTimeout(total=timeout)

        async with self._session.get(
            url,
            headers={'User-Agent': self.user_agent},
            allow_redirects=True,
            max_redirects=self.max_redirects,
            timeout=client_timeout,
        ) as response:
            cert_der = get_peer_certificate(response)

            # Drain the body so the connection can be reused
            drained = 0
            async for chunk in response.content.iter_chunked(_DRAIN_CHUNK_SIZE):
                drained += len(chunk)

            if response.history:
                logger.debug(f"Redirect chain for {url}: {' -> '.join(str(r.url) for r in response.history)}")

            content_length = response.content_length
            return ProbeResponse(
                status_code=response.status,
                content_length=content_length if content_length is not None else drained,
                final_url=str(response.url),
                cert_der=cert_der,
            )

    def _response_result(
        self,
        domain: str,
        url: str,
        response: ProbeResponse,
        elapsed_ms: int,
        attempts: int,
        started_at: datetime,
    ) -> HealthCheckResult:
        status = determine_status(response.status_code, elapsed_ms)
        logger.debug(
            f"HTTP request to {url} completed: status={response.status_code}, time={elapsed_ms}ms"
        )

        error_message = None
        error_type = None
        if response.status_code >= 400:
            error_message = f"HTTP {response.status_code}"
            error_type = ErrorType.HTTP_STATUS

        result = self._create_result(
            domain,
            url=url,
            status=status,
            status_code=response.status_code,
            response_time_ms=elapsed_ms,
            content_length=response.content_length,
            error_message=error_message,
            error_type=error_type,
            attempts=attempts,
            started_at=started_at,
            is_ssl=response.final_url.startswith('https://'),
        )

        if result.is_ssl and response.cert_der:
            self._record_certificate(result, response.cert_der)

        return result

    def _record_certificate(self, result: HealthCheckResult, cert_der: bytes) -> None:
        try:
            cert = parse_certificate(cert_der)
        except ValueError as e:
            logger.debug(f"Could not parse certificate for {result.domain}: {e}")
            return

        result.ssl_expiry = cert.expiration_date
        result.ssl_days_left = cert.days_until_expiry
        logger.debug(f"SSL certificate for {result.domain} expires in {cert.days_until_expiry} days")

        if cert.is_expiring:
            self.observer.certificate_expiring(
                result.domain, cert.days_until_expiry, cert.expiration_date
            )

    def _transport_failure(
        self,
        domain: str,
        url: str,
        error: Exception,
        timeout: float,
        elapsed_ms: int,
        attempts: int,
        started_at: datetime,
    ) -> HealthCheckResult:
        error_type, label = categorize_exception(error)
        detail = sanitize_string(str(error), max_length=200)

        if isinstance(error, asyncio.TimeoutError) and not detail:
            message = f"Request failed: request timed out after {timeout:.1f}s"
        elif label and detail:
            message = f"Request failed: {label}: {detail}"
        else:
            message = f"Request failed: {detail or label or type(error).__name__}"

        logger.debug(f"Transport error for {domain}: {message}")
        return self._create_result(
            domain,
            url=url,
            status=STATUS_DOWN,
            response_time_ms=elapsed_ms,
            error_message=message,
            error_type=error_type,
            attempts=attempts,
            started_at=started_at,
        )

    def _deadline_result(
        self,
        domain: str,
        url: str,
        attempts: int,
        phase: str,
        started_at: Optional[datetime] = None,
        **fields
    ) -> HealthCheckResult:
        logger.debug(f"Run deadline exceeded for {domain} {phase}")
        return self._create_result(
            domain,
            url=url,
            status=STATUS_DOWN,
            error_message=f"Run deadline exceeded {phase}",
            error_type=ErrorType.RUN_DEADLINE_EXCEEDED,
            attempts=attempts,
            started_at=started_at,
            **fields
        )

    async def _backoff(self, domain: str, attempt: int, reason: str, deadline: Optional[float]) -> bool:
        """
        Sleep before the next attempt.

        Returns:
            False if the run deadline arrives before the backoff completes
        """
        backoff = self.retry_policy.calculate_backoff(attempt)
        self.observer.retry_scheduled(domain, attempt, backoff, reason)

        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining < backoff:
                await asyncio.sleep(max(0.0, remaining))
                return False

        await asyncio.sleep(backoff)
        return True

    def _request_timeout(self, deadline: Optional[float]) -> float:
        if deadline is None:
            return self.timeout
        return max(0.0, min(self.timeout, deadline - time.monotonic()))

    @staticmethod
    def _deadline_passed(deadline: Optional[float]) -> bool:
        return deadline is not None and time.monotonic() >= deadline - DEADLINE_SLACK
