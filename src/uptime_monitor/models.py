"""Data models for uptime monitoring runs."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import json
import re


STATUS_UP = "up"
STATUS_DOWN = "down"
STATUS_DEGRADED = "degraded"

VALID_STATUSES = (STATUS_UP, STATUS_DEGRADED, STATUS_DOWN)

# Response time thresholds in milliseconds
THRESHOLD_FAST_MS = 1000
THRESHOLD_ACCEPT_MS = 3000

# Certificates closer than this to expiry are reported as a warning
SSL_EXPIRY_WARNING_DAYS = 30

DEFAULT_SERVICE_NAME = "Uptime Monitor"


def sanitize_string(text: str, max_length: int = 200) -> str:
    """Sanitize string for safe display by removing control characters and limiting length.

    Args:
        text: String to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if not text:
        return text

    # Remove control characters except newline and tab
    sanitized = re.sub(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f-\x9f]', '', text)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."

    return sanitized


def normalize_url(domain: str) -> str:
    """Return domain as a URL, prepending https:// when no scheme is given."""
    domain = domain.strip()
    if domain.startswith("http://") or domain.startswith("https://"):
        return domain
    return f"https://{domain}"


def determine_status(status_code: int, response_time_ms: int) -> str:
    """
    Map an HTTP status code and response time to a health status.

    - 2xx faster than THRESHOLD_ACCEPT_MS: up
    - 2xx at or above THRESHOLD_ACCEPT_MS: degraded
    - 3xx: up
    - 4xx: degraded
    - anything else (5xx, 0 for no response): down

    Args:
        status_code: Final HTTP status code, 0 if no response was received
        response_time_ms: Elapsed time of the probe in milliseconds

    Returns:
        One of STATUS_UP, STATUS_DEGRADED, STATUS_DOWN
    """
    if 200 <= status_code < 300:
        if response_time_ms >= THRESHOLD_ACCEPT_MS:
            return STATUS_DEGRADED
        return STATUS_UP
    elif 300 <= status_code < 400:
        return STATUS_UP
    elif 400 <= status_code < 500:
        return STATUS_DEGRADED
    else:
        return STATUS_DOWN


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


@dataclass
class HealthCheckResult:
    """
    Outcome of probing a single domain.

    Attributes:
        domain: Domain as configured (bare hostname or URL)
        url: URL that was requested
        status: up, degraded or down
        status_code: Final HTTP status code, 0 if no response was received
        response_time_ms: Elapsed time of the last attempt in milliseconds
        is_ssl: Whether the probe used HTTPS
        ssl_expiry: Leaf certificate "not after" date, if observed
        ssl_days_left: Whole days until ssl_expiry, if observed
        error_message: Failure description, set only on failure
        error_type: ErrorType value for the failure, set only on failure
        content_length: Content-Length header or number of body bytes read
        attempts: Number of attempts made, including the first
        started_at: When the last attempt started
        completed_at: When the last attempt completed
    """
    domain: str
    url: str
    status: str = STATUS_DOWN
    status_code: int = 0
    response_time_ms: int = 0
    is_ssl: bool = False
    ssl_expiry: Optional[datetime] = None
    ssl_days_left: Optional[int] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    content_length: int = 0
    attempts: int = 1
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_up(self) -> bool:
        return self.status == STATUS_UP

    @property
    def is_failure(self) -> bool:
        """True for down and degraded results."""
        return self.status in (STATUS_DOWN, STATUS_DEGRADED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON wire format, omitting absent optional fields."""
        data: Dict[str, Any] = {
            "domain": self.domain,
            "url": self.url,
            "status": self.status,
            "status_code": self.status_code,
            "response_time_ms": self.response_time_ms,
            "is_ssl": self.is_ssl,
        }
        if self.ssl_expiry is not None:
            data["ssl_expiry"] = _format_timestamp(self.ssl_expiry)
        if self.ssl_days_left is not None:
            data["ssl_days_left"] = self.ssl_days_left
        if self.error_message:
            data["error_message"] = self.error_message
        if self.error_type:
            data["error_type"] = self.error_type
        data["content_length"] = self.content_length
        data["attempts"] = self.attempts
        data["timestamp"] = self.started_at.isoformat()
        data["checked_at"] = _format_timestamp(self.completed_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HealthCheckResult':
        """Build a result from its wire format."""
        started_at = _parse_timestamp(data.get("timestamp")) or datetime.now(timezone.utc)
        completed_at = _parse_timestamp(data.get("checked_at")) or started_at
        return cls(
            domain=data["domain"],
            url=data.get("url", data["domain"]),
            status=data.get("status", STATUS_DOWN),
            status_code=int(data.get("status_code", 0)),
            response_time_ms=int(data.get("response_time_ms", 0)),
            is_ssl=bool(data.get("is_ssl", False)),
            ssl_expiry=_parse_timestamp(data.get("ssl_expiry")),
            ssl_days_left=data.get("ssl_days_left"),
            error_message=data.get("error_message"),
            error_type=data.get("error_type"),
            content_length=int(data.get("content_length", 0)),
            attempts=int(data.get("attempts", 1)),
            started_at=started_at,
            completed_at=completed_at,
        )


@dataclass(frozen=True)
class MonitorReport:
    """Aggregate of one run over every configured domain."""
    service: str
    environment: str
    total_checks: int
    uptime_count: int
    downtime_count: int
    degraded_count: int
    uptime_percent: float
    average_latency_ms: float
    timestamp: datetime
    results: Tuple[HealthCheckResult, ...] = ()

    @property
    def has_incidents(self) -> bool:
        """True when at least one domain is down or degraded."""
        return self.downtime_count > 0 or self.degraded_count > 0

    @property
    def failed_results(self) -> List[HealthCheckResult]:
        return [r for r in self.results if r.is_failure]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "environment": self.environment,
            "total_checks": self.total_checks,
            "uptime_count": self.uptime_count,
            "downtime_count": self.downtime_count,
            "degraded_count": self.degraded_count,
            "uptime_percent": self.uptime_percent,
            "average_latency_ms": self.average_latency_ms,
            "timestamp": _format_timestamp(self.timestamp),
            "results": [r.to_dict() for r in self.results],
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MonitorReport':
        """Build a report from its wire format (e.g. a saved report file)."""
        return cls(
            service=data.get("service", DEFAULT_SERVICE_NAME),
            environment=data.get("environment", ""),
            total_checks=int(data.get("total_checks", 0)),
            uptime_count=int(data.get("uptime_count", 0)),
            downtime_count=int(data.get("downtime_count", 0)),
            degraded_count=int(data.get("degraded_count", 0)),
            uptime_percent=float(data.get("uptime_percent", 0.0)),
            average_latency_ms=float(data.get("average_latency_ms", 0.0)),
            timestamp=_parse_timestamp(data.get("timestamp")) or datetime.now(timezone.utc),
            results=tuple(HealthCheckResult.from_dict(r) for r in data.get("results", [])),
        )
