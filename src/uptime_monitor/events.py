"""
Observer hooks for check engine events.

The engine reports what happens during a run through a CheckObserver so
that logging, progress display and any other telemetry stay pluggable.
"""

import logging
from datetime import datetime
from typing import Iterable, List, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import HealthCheckResult, MonitorReport


logger = logging.getLogger(__name__)


class CheckObserver:
    """Base observer; every hook is a no-op."""

    def run_started(self, domains: List[str]) -> None:
        pass

    def check_started(self, domain: str) -> None:
        pass

    def retry_scheduled(self, domain: str, attempt: int, backoff: float, reason: str) -> None:
        pass

    def certificate_expiring(self, domain: str, days_left: int, expiry: datetime) -> None:
        pass

    def probe_completed(self, result: 'HealthCheckResult') -> None:
        pass

    def run_completed(self, report: 'MonitorReport', elapsed: float) -> None:
        pass


class LoggingObserver(CheckObserver):
    """Emits engine events as log records."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def run_started(self, domains: List[str]) -> None:
        self.log.info(f"Starting checks for {len(domains)} domain(s)")

    def retry_scheduled(self, domain: str, attempt: int, backoff: float, reason: str) -> None:
        self.log.info(f"Retrying {domain} in {backoff:.2f}s after attempt {attempt + 1}: {reason}")

    def certificate_expiring(self, domain: str, days_left: int, expiry: datetime) -> None:
        self.log.warning(
            f"SSL certificate expiring soon for {domain}: {days_left} day(s) left "
            f"(expires {expiry.isoformat()})"
        )

    def probe_completed(self, result: 'HealthCheckResult') -> None:
        message = (
            f"Probe completed for {result.domain}: status={result.status} "
            f"code={result.status_code} time={result.response_time_ms}ms attempts={result.attempts}"
        )
        if result.error_message:
            message += f" error={result.error_message}"

        if result.is_up:
            self.log.debug(message)
        else:
            self.log.warning(message)

    def run_completed(self, report: 'MonitorReport', elapsed: float) -> None:
        self.log.info(
            f"Completed {report.total_checks} check(s) in {elapsed:.2f}s: "
            f"{report.uptime_count} up, {report.degraded_count} degraded, "
            f"{report.downtime_count} down ({report.uptime_percent:.2f}% uptime)"
        )


class CompositeObserver(CheckObserver):
    """Forwards every event to a list of observers."""

    def __init__(self, observers: Iterable[CheckObserver]):
        self.observers = list(observers)

    def run_started(self, domains: List[str]) -> None:
        for observer in self.observers:
            observer.run_started(domains)

    def check_started(self, domain: str) -> None:
        for observer in self.observers:
            observer.check_started(domain)

    def retry_scheduled(self, domain: str, attempt: int, backoff: float, reason: str) -> None:
        for observer in self.observers:
            observer.retry_scheduled(domain, attempt, backoff, reason)

    def certificate_expiring(self, domain: str, days_left: int, expiry: datetime) -> None:
        for observer in self.observers:
            observer.certificate_expiring(domain, days_left, expiry)

    def probe_completed(self, result: 'HealthCheckResult') -> None:
        for observer in self.observers:
            observer.probe_completed(result)

    def run_completed(self, report: 'MonitorReport', elapsed: float) -> None:
        for observer in self.observers:
            observer.run_completed(report, elapsed)
