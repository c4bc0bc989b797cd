"""Email delivery of reports, used as a fallback when saving to disk fails."""

import asyncio
import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from ..errors import ReportDeliveryError
from ..models import MonitorReport, STATUS_DEGRADED, STATUS_DOWN

logger = logging.getLogger(__name__)


DEFAULT_SUBJECT = "Uptime Monitor File Report Creation Failed"

_STATUS_COLORS = {
    "up": "#2ecc71",
    STATUS_DEGRADED: "#f39c12",
    STATUS_DOWN: "#e74c3c",
}


def build_plain_body(report: MonitorReport) -> str:
    return (
        "Failed to create JSON file for report\n\n"
        "The report data is attached below:\n\n"
        "=== BEGIN JSON DATA ===\n"
        f"{report.to_json(indent=2)}\n"
        "=== END JSON DATA ===\n"
    )


def build_html_report(report: MonitorReport, subject: str) -> str:
    """Render a report as a self-contained HTML email body."""
    rows = []
    for result in report.results:
        color = _STATUS_COLORS.get(result.status, "#333")
        ssl_days = "-" if result.ssl_days_left is None else str(result.ssl_days_left)
        rows.append(
            "<tr>"
            f"<td>{html.escape(result.domain)}</td>"
            f"<td style=\"color:{color};font-weight:bold\">{html.escape(result.status.upper())}</td>"
            f"<td>{result.status_code}</td>"
            f"<td>{result.response_time_ms} ms</td>"
            f"<td>{ssl_days}</td>"
            f"<td>{html.escape(result.error_message or '')}</td>"
            "</tr>"
        )

    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{html.escape(subject)}</title></head>
<body style="font-family: Arial, sans-serif; color: #333;">
<h1>{html.escape(report.service)}</h1>
<p>Environment: {html.escape(report.environment)} | Generated: {report.timestamp.isoformat()}</p>
<h2>Summary</h2>
<ul>
<li>Total checks: {report.total_checks}</li>
<li>Up: {report.uptime_count}</li>
<li>Degraded: {report.degraded_count}</li>
<li>Down: {report.downtime_count}</li>
<li>Uptime: {report.uptime_percent:.2f}%</li>
<li>Average latency: {report.average_latency_ms:.0f} ms</li>
</ul>
<h2>Results</h2>
<table cellpadding="6" style="border-collapse: collapse;">
<tr><th>Domain</th><th>Status</th><th>Code</th><th>Latency</th><th>SSL days</th><th>Error</th></tr>
{''.join(rows)}
</table>
</body>
</html>
"""


class EmailSender:
    """Sends reports as multipart (plain text + HTML) email over SMTP."""

    CHANNEL = "email"

    def __init__(
        self,
        user: str,
        auth: str,
        recipients,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        timeout: float = 30.0,
    ):
        self.user = user
        self.auth = auth
        self.recipients = list(recipients)
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.user and self.auth and self.recipients)

    def build_message(self, report: MonitorReport, subject: Optional[str] = None) -> EmailMessage:
        subject = subject or DEFAULT_SUBJECT
        message = EmailMessage()
        message['From'] = f"{report.service} <{self.user}>"
        message['To'] = ", ".join(self.recipients)
        message['Subject'] = subject
        message.set_content(build_plain_body(report))
        message.add_alternative(build_html_report(report, subject), subtype='html')
        return message

    async def send(self, report: MonitorReport, subject: Optional[str] = None) -> bool:
        """
        Email the report; does nothing when email is not configured.

        Returns:
            True if a message was sent

        Raises:
            ReportDeliveryError: If the SMTP exchange fails
        """
        if not self.configured:
            logger.debug("Email not configured, skipping")
            return False

        message = self.build_message(report, subject)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise ReportDeliveryError(self.CHANNEL, f"failed to send email: {e}") from e

        logger.info(f"Email sent with report data to {len(self.recipients)} recipient(s)")
        return True

    def _send_sync(self, message: EmailMessage) -> None:
        """Blocking SMTP exchange (runs in thread pool)."""
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as smtp:
            smtp.starttls()
            smtp.login(self.user, self.auth)
            smtp.send_message(message)
