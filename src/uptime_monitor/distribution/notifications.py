"""Slack and Discord webhook notifications for reports with incidents."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..errors import ReportDeliveryError
from ..models import MonitorReport, STATUS_DEGRADED

logger = logging.getLogger(__name__)


def build_slack_payload(report: MonitorReport) -> Dict[str, Any]:
    """Slack message with one attachment summarizing the incidents."""
    color = "danger" if report.downtime_count > 0 else "warning"
    failed_services = [f"{r.domain} ({r.status})" for r in report.failed_results]

    return {
        "text": (
            f"🚨 Uptime Alert - {report.downtime_count} service(s) down, "
            f"{report.degraded_count} degraded"
        ),
        "attachments": [
            {
                "color": color,
                "fields": [
                    {"title": "Environment", "value": report.environment, "short": True},
                    {"title": "Uptime", "value": f"{report.uptime_percent:.2f}%", "short": True},
                    {"title": "Down", "value": str(report.downtime_count), "short": True},
                    {"title": "Degraded", "value": str(report.degraded_count), "short": True},
                    {"title": "Failed Services", "value": "\n".join(failed_services), "short": False},
                ],
                "footer": report.service,
                "ts": int(report.timestamp.timestamp()),
            }
        ],
    }


def build_discord_payload(report: MonitorReport) -> Dict[str, Any]:
    """Discord message listing every down or degraded domain."""
    lines = []
    for result in report.failed_results:
        emoji = "🟡" if result.status == STATUS_DEGRADED else "🔴"
        lines.append(f"{emoji} **{result.domain}** - {result.status}")

    content = (
        "🚨 **Uptime Alert**\n\n"
        f"**Environment:** {report.environment}\n"
        f"**Uptime:** {report.uptime_percent:.2f}%\n"
        f"**Down:** {report.downtime_count} | **Degraded:** {report.degraded_count}\n\n"
        f"**Failed Services:**\n" + "\n".join(lines)
    )

    return {"content": content, "username": report.service}


class NotificationSender:
    """Routes reports with down or degraded domains to configured webhooks."""

    CHANNEL = "notifications"

    def __init__(
        self,
        slack_webhook: str = "",
        discord_webhook: str = "",
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.slack_webhook = slack_webhook
        self.discord_webhook = discord_webhook
        self.timeout = timeout
        self.session = session

    @property
    def configured(self) -> bool:
        return bool(self.slack_webhook or self.discord_webhook)

    async def send(self, report: MonitorReport) -> List[str]:
        """Notify every configured webhook; returns the channels notified."""
        notified, _ = await self.deliver(report)
        return notified

    async def deliver(self, report: MonitorReport) -> Tuple[List[str], List[ReportDeliveryError]]:
        """
        Notify every configured webhook when the report has incidents.

        A failing webhook is logged and does not stop the others.

        Returns:
            (names of the channels notified, one error per failed channel)
        """
        if not report.has_incidents:
            logger.debug("No incidents in report, skipping notifications")
            return [], []

        targets = []
        if self.slack_webhook:
            targets.append(("slack", self.slack_webhook, build_slack_payload(report)))
        if self.discord_webhook:
            targets.append(("discord", self.discord_webhook, build_discord_payload(report)))

        notified: List[str] = []
        errors: List[ReportDeliveryError] = []
        for name, url, payload in targets:
            try:
                await self._send_webhook(url, payload)
            except ReportDeliveryError as e:
                message = str(e)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                message = str(e) or type(e).__name__
            else:
                logger.info(f"Notification sent successfully to {name}")
                notified.append(name)
                continue

            logger.error(f"Failed to send {name} notification: {message}")
            errors.append(ReportDeliveryError(name, f"webhook delivery failed: {message}"))

        return notified, errors

    async def _send_webhook(self, url: str, payload: Dict[str, Any]) -> None:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        if self.session is not None:
            await self._post(self.session, url, payload, timeout)
            return
        async with aiohttp.ClientSession() as session:
            await self._post(session, url, payload, timeout)

    async def _post(self, session: aiohttp.ClientSession, url: str, payload: Dict[str, Any], timeout: aiohttp.ClientTimeout) -> None:
        async with session.post(url, json=payload, timeout=timeout) as response:
            if response.status >= 400:
                body = await response.text()
                raise ReportDeliveryError(
                    self.CHANNEL, f"webhook failed with status {response.status}: {body}"
                )
