"""
Report distribution: local storage, collector API, webhooks and email.

Distribution runs after the report is complete and never changes it; a
failing channel is recorded on the outcome and does not stop the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import aiohttp

from ..config import MonitorConfig
from ..errors import ReportDeliveryError
from ..models import MonitorReport
from ..rate_limiter import TokenBucketRateLimiter
from .api import ReportSubmitter
from .mail import EmailSender
from .notifications import NotificationSender
from .storage import save_report

logger = logging.getLogger(__name__)

__all__ = [
    'DistributionOutcome',
    'EmailSender',
    'NotificationSender',
    'ReportDistributor',
    'ReportSubmitter',
    'save_report',
]


@dataclass
class DistributionOutcome:
    """What happened to a report across every delivery channel."""

    saved_path: Optional[Path] = None
    submitted: bool = False
    emailed: bool = False
    notified: List[str] = field(default_factory=list)
    errors: List[ReportDeliveryError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ReportDistributor:
    """Sends a finished report to the channels enabled in the configuration."""

    def __init__(
        self,
        config: MonitorConfig,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
    ):
        self.config = config
        self.submitter = ReportSubmitter(
            api_url=config.api_url,
            api_key=config.api_key,
            user_agent=config.user_agent,
            timeout=config.timeout,
            retry_policy=config.retry,
            rate_limiter=rate_limiter or config.create_rate_limiter(),
            session=session,
        )
        self.notifier = NotificationSender(
            slack_webhook=config.slack_webhook,
            discord_webhook=config.discord_webhook,
            timeout=config.timeout,
            session=session,
        )
        self.mailer = EmailSender(
            user=config.email.user,
            auth=config.email.auth,
            recipients=config.email.to,
            smtp_host=config.email.smtp_host,
            smtp_port=config.email.smtp_port,
            timeout=config.timeout,
        )

    async def save(self, report: MonitorReport) -> Path:
        """
        Save the report under the configured output directory.

        Raises:
            ReportDeliveryError: If the file cannot be written
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, save_report, report, self.config.output_dir)
        except (OSError, TypeError, ValueError) as e:
            raise ReportDeliveryError("storage", f"failed to save report: {e}") from e

    async def submit(self, report: MonitorReport, deadline: Optional[float] = None) -> bool:
        """Submit to the collector API; returns False when none is configured."""
        if not self.config.api_url:
            logger.debug("API URL not configured, skipping submission")
            return False
        await self.submitter.submit(report, deadline=deadline)
        return True

    async def notify(self, report: MonitorReport) -> Tuple[List[str], List[ReportDeliveryError]]:
        """Send incident webhooks; returns (channels notified, failures)."""
        if not self.notifier.configured:
            return [], []
        return await self.notifier.deliver(report)

    async def email_fallback(self, report: MonitorReport) -> bool:
        """Email the report after a storage failure."""
        if not self.mailer.configured:
            logger.warning("Email not configured, report could not be delivered by email")
            return False
        return await self.mailer.send(report)

    async def distribute(
        self,
        report: MonitorReport,
        save: bool = True,
        submit: bool = True,
        notify: bool = True,
        deadline: Optional[float] = None,
    ) -> DistributionOutcome:
        """
        Deliver the report to every requested channel.

        A storage failure triggers the email fallback. Errors from each
        channel are collected on the outcome instead of being raised.

        Args:
            report: Finished report
            save: Write the report to the output directory
            submit: POST the report to the collector API
            notify: Send webhook notifications for incidents
            deadline: Absolute time.monotonic() value bounding API retries

        Returns:
            DistributionOutcome describing each channel
        """
        outcome = DistributionOutcome()

        if save:
            try:
                outcome.saved_path = await self.save(report)
            except ReportDeliveryError as e:
                logger.error(str(e))
                outcome.errors.append(e)
                try:
                    outcome.emailed = await self.email_fallback(report)
                except ReportDeliveryError as mail_error:
                    logger.error(str(mail_error))
                    outcome.errors.append(mail_error)

        if submit:
            try:
                outcome.submitted = await self.submit(report, deadline=deadline)
            except ReportDeliveryError as e:
                logger.error(str(e))
                outcome.errors.append(e)

        if notify:
            outcome.notified, failures = await self.notify(report)
            outcome.errors.extend(failures)

        return outcome
