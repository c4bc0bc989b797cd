"""
Checker modules for uptime monitoring.

Each checker turns a domain into a HealthCheckResult.
"""

from .base_checker import BaseChecker
from .http import DomainChecker, ProbeResponse, create_session
from .ssl import CertificateInfo, parse_certificate

__all__ = ['BaseChecker', 'DomainChecker', 'ProbeResponse', 'create_session', 'CertificateInfo', 'parse_certificate']
