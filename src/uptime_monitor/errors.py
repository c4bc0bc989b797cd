"""Error taxonomy for uptime monitoring.

Domain-level failures are recorded as data on HealthCheckResult; the
exceptions below only cross component boundaries inside the engine or
the report distribution layer.
"""

import asyncio
import socket
import ssl
from enum import Enum
from typing import Optional, Tuple

import aiohttp


class ErrorType(str, Enum):
    """Failure categories recorded on a HealthCheckResult."""
    TRANSPORT = "TransportError"
    HTTP_STATUS = "HTTPStatusFailure"
    REDIRECT_LIMIT = "RedirectLimitExceeded"
    RATE_LIMITER_CANCELLED = "RateLimiterCancelled"
    RUN_DEADLINE_EXCEEDED = "RunDeadlineExceeded"


class MonitorError(Exception):
    """Base class for all uptime monitor errors."""


class RateLimiterCancelled(MonitorError):
    """Raised when a token cannot be obtained before the run deadline."""


class ConfigurationError(MonitorError, ValueError):
    """Raised for invalid or incomplete monitor configuration."""


class ReportDeliveryError(MonitorError):
    """Raised when a report could not be delivered to one of its sinks."""

    def __init__(self, channel: str, message: str):
        super().__init__(f"{channel}: {message}")
        self.channel = channel


def categorize_exception(exc: BaseException) -> Tuple[ErrorType, Optional[str]]:
    """
    Map a probe exception to an ErrorType and a short human label.

    Args:
        exc: Exception raised while issuing a probe request

    Returns:
        Tuple of (error type, label or None when no better label exists)
    """
    if isinstance(exc, aiohttp.TooManyRedirects):
        return ErrorType.REDIRECT_LIMIT, "Too many redirects"

    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return ErrorType.TRANSPORT, "Request timed out"

    if isinstance(exc, aiohttp.ClientSSLError) or isinstance(exc, ssl.SSLError):
        return ErrorType.TRANSPORT, "TLS error"

    if isinstance(exc, aiohttp.ClientConnectorError):
        os_error = getattr(exc, 'os_error', None)
        if isinstance(os_error, socket.gaierror):
            return ErrorType.TRANSPORT, "DNS resolution failed"
        if isinstance(os_error, ConnectionRefusedError):
            return ErrorType.TRANSPORT, "Connection refused"
        return ErrorType.TRANSPORT, "Connection failed"

    return ErrorType.TRANSPORT, None
