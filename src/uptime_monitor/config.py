"""Configuration management for uptime monitoring."""

import json
import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .checkers.http import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from .errors import ConfigurationError
from .models import DEFAULT_SERVICE_NAME
from .rate_limiter import TokenBucketRateLimiter
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


DEFAULT_CONCURRENT = 5
DEFAULT_RUN_TIMEOUT = 300.0
DEFAULT_REQUESTS_PER_SECOND = 10.0
DEFAULT_BURST_SIZE = 20
DEFAULT_ENVIRONMENT = "production"
DEFAULT_OUTPUT_DIR = "./reports"
DEFAULT_SMTP_HOST = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 587

_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|h|m|s)')
_DURATION_UNITS = {'h': 3600.0, 'm': 60.0, 's': 1.0, 'ms': 0.001}


@dataclass
class EmailConfig:
    """SMTP settings for the email fallback channel."""

    user: str = ""
    auth: str = ""
    to: List[str] = field(default_factory=list)
    smtp_host: str = DEFAULT_SMTP_HOST
    smtp_port: int = DEFAULT_SMTP_PORT

    @property
    def enabled(self) -> bool:
        return bool(self.user and self.auth and self.to)


@dataclass
class MonitorConfig:
    """Complete configuration for one monitoring run."""

    domains: List[str]
    api_url: str = ""
    api_key: str = ""
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    concurrent: int = DEFAULT_CONCURRENT
    environment: str = DEFAULT_ENVIRONMENT
    output_dir: str = DEFAULT_OUTPUT_DIR
    slack_webhook: str = ""
    discord_webhook: str = ""
    email: EmailConfig = field(default_factory=EmailConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND
    burst_size: int = DEFAULT_BURST_SIZE
    run_timeout: float = DEFAULT_RUN_TIMEOUT
    service_name: str = DEFAULT_SERVICE_NAME

    def create_rate_limiter(self) -> TokenBucketRateLimiter:
        """Build the limiter shared by every request of a run."""
        return TokenBucketRateLimiter(rate=self.requests_per_second, burst=self.burst_size)

    def with_overrides(self, **changes: Any) -> 'MonitorConfig':
        """Return a copy with the non-None changes applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) and Go-style strings such as
    "30s", "500ms", "2m" or "1m30s".

    Raises:
        ValueError: If the value is not a valid duration
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip().lower()
    if not text:
        raise ValueError("Duration cannot be empty")

    try:
        return float(text)
    except ValueError:
        pass

    parts = _DURATION_PART.findall(text)
    if not parts or ''.join(n + u for n, u in parts) != text:
        raise ValueError(f"Invalid duration: {value!r}")

    return sum(float(number) * _DURATION_UNITS[unit] for number, unit in parts)


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> MonitorConfig:
    """
    Build configuration from environment variables.

    MONITOR_DOMAINS is required; optional values that fail to parse fall
    back to their defaults with a warning.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated MonitorConfig

    Raises:
        ConfigurationError: If MONITOR_DOMAINS is missing or validation fails
    """
    env = os.environ if environ is None else environ

    domains = _split_list(env.get('MONITOR_DOMAINS'))
    if not domains:
        raise ConfigurationError("MONITOR_DOMAINS environment variable not set")

    def duration(key: str, default: float) -> float:
        raw = env.get(key)
        if not raw:
            return default
        try:
            return parse_duration(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid {key}={raw!r}, using {default}s")
            return default

    def integer(key: str, default: int) -> int:
        raw = env.get(key)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid {key}={raw!r}, using {default}")
            return default

    config = MonitorConfig(
        domains=domains,
        api_url=env.get('API_URL', ''),
        api_key=env.get('API_KEY', ''),
        timeout=duration('MONITOR_TIMEOUT', DEFAULT_TIMEOUT),
        user_agent=env.get('USER_AGENT') or DEFAULT_USER_AGENT,
        concurrent=integer('MONITOR_CONCURRENT', DEFAULT_CONCURRENT),
        environment=env.get('ENVIRONMENT') or DEFAULT_ENVIRONMENT,
        output_dir=env.get('OUTPUT_DIR') or DEFAULT_OUTPUT_DIR,
        slack_webhook=env.get('SLACK_WEBHOOK_URL', ''),
        discord_webhook=env.get('DISCORD_WEBHOOK_URL', ''),
        email=EmailConfig(
            user=env.get('EMAIL_USER', ''),
            auth=env.get('EMAIL_AUTH', ''),
            to=_split_list(env.get('EMAIL_TO')),
            smtp_host=env.get('SMTP_HOST') or DEFAULT_SMTP_HOST,
            smtp_port=integer('SMTP_PORT', DEFAULT_SMTP_PORT),
        ),
        run_timeout=duration('MONITOR_RUN_TIMEOUT', DEFAULT_RUN_TIMEOUT),
    )

    validate_config(config)
    return config


def get_default_config_path() -> Optional[str]:
    """
    Find default configuration file in current directory.

    Looks for monitor.yaml first, then monitor.json.

    Returns:
        Path to configuration file if found, None otherwise.
    """
    yaml_path = Path('monitor.yaml')
    if yaml_path.exists():
        return str(yaml_path)

    json_path = Path('monitor.json')
    if json_path.exists():
        return str(json_path)

    return None


def load_config_file(file_path: str) -> MonitorConfig:
    """
    Load and parse a configuration file (YAML or JSON).

    Expected YAML format:
        domains:
          - example.com
          - https://api.example.com/health
        concurrent: 5
        timeout: 30s
        run_timeout: 5m
        environment: production
        output_dir: ./reports
        api_url: https://collector.example.com/reports
        api_key: secret
        slack_webhook: https://hooks.slack.com/...
        retry:
          max_retries: 3
          initial_backoff: 1s
        rate_limit:
          requests_per_second: 10
          burst: 20
        email:
          user: monitor@example.com
          to: [ops@example.com]

    Args:
        file_path: Path to configuration file

    Returns:
        Validated MonitorConfig

    Raises:
        FileNotFoundError: If file doesn't exist
        ConfigurationError: If file format is invalid or parsing fails
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            content = f.read()

        if path.suffix in ['.yaml', '.yml']:
            data = yaml.safe_load(content)
        elif path.suffix == '.json':
            data = json.loads(content)
        else:
            raise ConfigurationError(f"Unsupported file format: {path.suffix}. Use .yaml, .yml, or .json")

        if data is None:
            raise ConfigurationError("Configuration file is empty")
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration file must contain an object/dictionary")

        config = _parse_config(data)
        validate_config(config)
        return config

    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax: {str(e)}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON syntax at line {e.lineno}, column {e.colno}: {e.msg}")
    except (FileNotFoundError, ConfigurationError):
        raise
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Failed to parse configuration file: {str(e)}")


def _parse_config(data: Dict[str, Any]) -> MonitorConfig:
    domains = data.get('domains')
    if not isinstance(domains, list):
        raise ConfigurationError("'domains' must be a list")
    for idx, domain in enumerate(domains):
        if not isinstance(domain, str) or not domain.strip():
            raise ConfigurationError(f"Domain at index {idx} must be a non-empty string")

    retry_data = data.get('retry') or {}
    if not isinstance(retry_data, dict):
        raise ConfigurationError("'retry' must be an object/dictionary")
    rate_data = data.get('rate_limit') or {}
    if not isinstance(rate_data, dict):
        raise ConfigurationError("'rate_limit' must be an object/dictionary")
    email_data = data.get('email') or {}
    if not isinstance(email_data, dict):
        raise ConfigurationError("'email' must be an object/dictionary")

    defaults = RetryPolicy()
    retry = RetryPolicy(
        max_retries=int(retry_data.get('max_retries', defaults.max_retries)),
        initial_backoff=parse_duration(retry_data.get('initial_backoff', defaults.initial_backoff)),
        max_backoff=parse_duration(retry_data.get('max_backoff', defaults.max_backoff)),
        backoff_multiplier=float(retry_data.get('backoff_multiplier', defaults.backoff_multiplier)),
    )

    recipients = email_data.get('to', [])
    if isinstance(recipients, str):
        recipients = _split_list(recipients)

    return MonitorConfig(
        domains=[d.strip() for d in domains],
        api_url=data.get('api_url', ''),
        api_key=data.get('api_key', ''),
        timeout=parse_duration(data.get('timeout', DEFAULT_TIMEOUT)),
        user_agent=data.get('user_agent', DEFAULT_USER_AGENT),
        concurrent=int(data.get('concurrent', DEFAULT_CONCURRENT)),
        environment=data.get('environment', DEFAULT_ENVIRONMENT),
        output_dir=data.get('output_dir', DEFAULT_OUTPUT_DIR),
        slack_webhook=data.get('slack_webhook', ''),
        discord_webhook=data.get('discord_webhook', ''),
        email=EmailConfig(
            user=email_data.get('user', ''),
            auth=email_data.get('auth', ''),
            to=list(recipients),
            smtp_host=email_data.get('smtp_host', DEFAULT_SMTP_HOST),
            smtp_port=int(email_data.get('smtp_port', DEFAULT_SMTP_PORT)),
        ),
        retry=retry,
        requests_per_second=float(rate_data.get('requests_per_second', DEFAULT_REQUESTS_PER_SECOND)),
        burst_size=int(rate_data.get('burst', DEFAULT_BURST_SIZE)),
        run_timeout=parse_duration(data.get('run_timeout', DEFAULT_RUN_TIMEOUT)),
        service_name=data.get('service_name', DEFAULT_SERVICE_NAME),
    )


def validate_config(config: MonitorConfig) -> None:
    """
    Validate monitor configuration.

    Args:
        config: MonitorConfig to validate

    Raises:
        ConfigurationError: If validation fails with descriptive error message
    """
    if not config.domains:
        raise ConfigurationError("At least one domain must be configured")

    for domain in config.domains:
        if not domain or not domain.strip():
            raise ConfigurationError("Domain name cannot be empty")

    if config.concurrent < 1:
        raise ConfigurationError(f"Concurrency limit must be a positive integer, got {config.concurrent}")

    if config.timeout <= 0:
        raise ConfigurationError(f"Timeout must be positive, got {config.timeout}")

    if config.run_timeout <= 0:
        raise ConfigurationError(f"Run timeout must be positive, got {config.run_timeout}")

    if config.requests_per_second <= 0:
        raise ConfigurationError(f"Rate limit must be positive, got {config.requests_per_second}")

    if config.burst_size < 1:
        raise ConfigurationError(f"Burst size must be at least 1, got {config.burst_size}")
