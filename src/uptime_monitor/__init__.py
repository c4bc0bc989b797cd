"""
Uptime Monitor

Concurrent HTTP(S) availability checks with retries, rate limiting, a run
deadline and TLS certificate expiry tracking, aggregated into one report.
"""

__version__ = "0.1.0"
__author__ = "Uptime Monitor Team"

from .executor import CheckOrchestrator, generate_report
from .config import MonitorConfig, load_config_file, load_config_from_env, validate_config
from .checkers import BaseChecker, DomainChecker
from .models import HealthCheckResult, MonitorReport
from .rate_limiter import TokenBucketRateLimiter
from .retry import RetryPolicy
from .reporter import Reporter
from .main import main

__all__ = [
    'CheckOrchestrator',
    'generate_report',
    'MonitorConfig',
    'load_config_file',
    'load_config_from_env',
    'validate_config',
    'BaseChecker',
    'DomainChecker',
    'HealthCheckResult',
    'MonitorReport',
    'TokenBucketRateLimiter',
    'RetryPolicy',
    'Reporter',
    'main',
]
