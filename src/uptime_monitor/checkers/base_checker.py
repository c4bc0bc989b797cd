"""
Base checker infrastructure for uptime monitoring.

Provides the abstract base class shared by checker implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from ..errors import ErrorType
from ..events import CheckObserver
from ..models import HealthCheckResult, STATUS_DOWN, normalize_url


class BaseChecker(ABC):
    """
    Abstract base class for domain checkers.

    A checker turns one domain into exactly one final HealthCheckResult.
    Implementations must capture every domain-level failure in the result
    instead of raising.
    """

    def __init__(self, timeout: float = 30.0, observer: Optional[CheckObserver] = None):
        """
        Initialize the checker.

        Args:
            timeout: Maximum time in seconds to wait for a single request (default: 30)
            observer: Receiver for engine events (default: no-op observer)
        """
        self.timeout = timeout
        self.observer = observer or CheckObserver()

    @abstractmethod
    async def check(self, domain: str, deadline: Optional[float] = None) -> HealthCheckResult:
        """
        Probe the specified domain to completion, including retries.

        Args:
            domain: Bare hostname or full URL
            deadline: Absolute time.monotonic() value after which the check must give up

        Returns:
            Final HealthCheckResult for the domain
        """
        pass

    def _create_result(
        self,
        domain: str,
        status: str = STATUS_DOWN,
        error_message: Optional[str] = None,
        error_type: Optional[str] = None,
        attempts: int = 1,
        started_at: Optional[datetime] = None,
        **fields
    ) -> HealthCheckResult:
        """
        Helper method to create HealthCheckResult objects.

        Args:
            domain: The domain that was checked
            status: Health status (defaults to down)
            error_message: Failure description, if any
            error_type: ErrorType value for the failure, if any
            attempts: Attempts made so far
            started_at: Start of the attempt (defaults to now)
            **fields: Any other HealthCheckResult field

        Returns:
            HealthCheckResult with completed_at set to now
        """
        url = fields.pop('url', None) or normalize_url(domain)
        if isinstance(error_type, ErrorType):
            error_type = error_type.value
        now = datetime.now(timezone.utc)
        return HealthCheckResult(
            domain=domain,
            url=url,
            status=status,
            is_ssl=fields.pop('is_ssl', url.startswith('https://')),
            error_message=error_message,
            error_type=error_type,
            attempts=attempts,
            started_at=started_at or now,
            completed_at=now,
            **fields
        )
