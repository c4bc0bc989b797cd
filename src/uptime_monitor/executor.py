"""
Executor layer for uptime monitoring.

Fans the configured domains out across a bounded set of concurrent checks,
enforces the run deadline, and folds the results into a MonitorReport.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from .checkers.base_checker import BaseChecker
from .checkers.http import DomainChecker, create_session
from .config import MonitorConfig
from .errors import ErrorType
from .events import CheckObserver, LoggingObserver
from .models import (
    DEFAULT_SERVICE_NAME,
    HealthCheckResult,
    MonitorReport,
    STATUS_DEGRADED,
    STATUS_DOWN,
    STATUS_UP,
    normalize_url,
)
from .rate_limiter import TokenBucketRateLimiter


logger = logging.getLogger(__name__)


def generate_report(
    results: Sequence[HealthCheckResult],
    service: str = DEFAULT_SERVICE_NAME,
    environment: str = "",
    timestamp: Optional[datetime] = None,
) -> MonitorReport:
    """
    Aggregate per-domain results into a MonitorReport.

    Average latency includes failed checks; uptime percentage is 0 for an
    empty result set.

    Args:
        results: Final results in input domain order
        service: Service name recorded on the report
        environment: Environment label recorded on the report
        timestamp: Report time (defaults to now, UTC)

    Returns:
        MonitorReport for the run
    """
    up_count = sum(1 for r in results if r.status == STATUS_UP)
    down_count = sum(1 for r in results if r.status == STATUS_DOWN)
    degraded_count = sum(1 for r in results if r.status == STATUS_DEGRADED)
    total = len(results)

    average_latency = 0.0
    uptime_percent = 0.0
    if total > 0:
        average_latency = sum(r.response_time_ms for r in results) / total
        uptime_percent = up_count / total * 100

    return MonitorReport(
        service=service,
        environment=environment,
        total_checks=total,
        uptime_count=up_count,
        downtime_count=down_count,
        degraded_count=degraded_count,
        uptime_percent=uptime_percent,
        average_latency_ms=average_latency,
        timestamp=timestamp or datetime.now(timezone.utc),
        results=tuple(results),
    )


class CheckOrchestrator:
    """
    Runs a checker over every domain with bounded parallelism.

    One task is created per domain and admitted through a semaphore, so at
    most `config.concurrent` checks are in flight at once. Each task writes
    its result into the slot matching its input position, which keeps the
    report in input order regardless of completion order.
    """

    def __init__(
        self,
        config: MonitorConfig,
        checker: Optional[BaseChecker] = None,
        observer: Optional[CheckObserver] = None,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Run configuration
            checker: Checker to use (default: a DomainChecker built from config)
            observer: Receiver for engine events (default: LoggingObserver)
            rate_limiter: Shared limiter (default: built from config)
        """
        self.config = config
        self.observer = observer or LoggingObserver()
        self.rate_limiter = rate_limiter or config.create_rate_limiter()
        self.checker = checker

    def _build_checker(self, session) -> DomainChecker:
        return DomainChecker(
            rate_limiter=self.rate_limiter,
            retry_policy=self.config.retry,
            timeout=self.config.timeout,
            user_agent=self.config.user_agent,
            session=session,
            observer=self.observer,
        )

    async def run_check(self, domains: Optional[Sequence[str]] = None) -> MonitorReport:
        """
        Check every domain and build the run's report.

        Returns once every domain has a final result or the run deadline
        (`config.run_timeout`) has elapsed; checks still running at the
        deadline are cancelled and recorded as down.

        Args:
            domains: Domains to check (default: config.domains)

        Returns:
            MonitorReport with results in input order
        """
        domains = list(self.config.domains if domains is None else domains)
        start_time = time.monotonic()
        deadline = start_time + self.config.run_timeout
        self.observer.run_started(domains)

        if self.checker is not None:
            results = await self._run_all(self.checker, domains, deadline)
        else:
            async with create_session(self.config.user_agent) as session:
                results = await self._run_all(self._build_checker(session), domains, deadline)

        report = generate_report(
            results,
            service=self.config.service_name,
            environment=self.config.environment,
        )
        self.observer.run_completed(report, time.monotonic() - start_time)
        return report

    async def _run_all(
        self,
        checker: BaseChecker,
        domains: List[str],
        deadline: float,
    ) -> List[HealthCheckResult]:
        slots: List[Optional[HealthCheckResult]] = [None] * len(domains)
        started: List[Optional[float]] = [None] * len(domains)
        semaphore = asyncio.Semaphore(self.config.concurrent)

        async def bounded_check(index: int, domain: str) -> None:
            """Run one check under the semaphore and store it in its slot."""
            async with semaphore:
                started[index] = time.monotonic()
                self.observer.check_started(domain)
                slots[index] = await self._safe_check(checker, domain, deadline)

        tasks = [
            asyncio.ensure_future(bounded_check(i, domain))
            for i, domain in enumerate(domains)
        ]

        if tasks:
            try:
                timeout = max(0.0, deadline - time.monotonic())
                _, pending = await asyncio.wait(tasks, timeout=timeout)
            except asyncio.CancelledError:
                logger.warning("Run cancelled, cancelling every unfinished check")
                await self._cancel_all(tasks)
                raise

            if pending:
                logger.warning(f"Run deadline exceeded, cancelling {len(pending)} unfinished check(s)")
                await self._cancel_all(pending)

        results = []
        for index, domain in enumerate(domains):
            result = slots[index]
            if result is None:
                result = self._deadline_result(domain, started[index])
                self.observer.probe_completed(result)
            results.append(result)

        return results

    @staticmethod
    async def _cancel_all(tasks) -> None:
        """Cancel the unfinished tasks and wait until every one has stopped."""
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _safe_check(
        self,
        checker: BaseChecker,
        domain: str,
        deadline: float,
    ) -> HealthCheckResult:
        """
        Wrapper to keep one domain's unexpected failure from affecting the run.

        Checkers already capture domain-level failures; anything that still
        escapes is recorded as a down result.
        """
        try:
            return await checker.check(domain, deadline=deadline)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error_msg = str(e) if str(e) else f"{type(e).__name__} occurred"
            logger.error(f"Check failed for {domain}: {error_msg}", exc_info=True)
            now = datetime.now(timezone.utc)
            return HealthCheckResult(
                domain=domain,
                url=normalize_url(domain),
                status=STATUS_DOWN,
                error_message=f"Check failed: {error_msg}",
                error_type=ErrorType.TRANSPORT.value,
                started_at=now,
                completed_at=now,
            )

    def _deadline_result(self, domain: str, started_at: Optional[float]) -> HealthCheckResult:
        now = datetime.now(timezone.utc)
        url = normalize_url(domain)

        if started_at is None:
            message = f"Run deadline exceeded after {self.config.run_timeout:.1f}s before check started"
            elapsed_ms = 0
        else:
            message = f"Run deadline exceeded after {self.config.run_timeout:.1f}s, check cancelled"
            elapsed_ms = int((time.monotonic() - started_at) * 1000)
        started = now - timedelta(milliseconds=elapsed_ms)

        return HealthCheckResult(
            domain=domain,
            url=url,
            status=STATUS_DOWN,
            response_time_ms=elapsed_ms,
            is_ssl=url.startswith('https://'),
            error_message=message,
            error_type=ErrorType.RUN_DEADLINE_EXCEEDED.value,
            started_at=started,
            completed_at=now,
        )
