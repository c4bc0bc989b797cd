"""
Tests for configuration module.

Tests environment and file loading, duration parsing, and validation.
"""

import json

import pytest

from uptime_monitor.config import (
    DEFAULT_CONCURRENT,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_RUN_TIMEOUT,
    EmailConfig,
    MonitorConfig,
    get_default_config_path,
    load_config_file,
    load_config_from_env,
    parse_duration,
    validate_config,
)
from uptime_monitor.errors import ConfigurationError
from uptime_monitor.retry import RetryPolicy


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize("value,expected", [
        (30, 30.0),
        (2.5, 2.5),
        ("45", 45.0),
        ("30s", 30.0),
        ("500ms", 0.5),
        ("2m", 120.0),
        ("1m30s", 90.0),
        ("1h", 3600.0),
        (" 10S ", 10.0),
    ])
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "abc", "10x", "1m 30s", True])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestLoadConfigFromEnv:
    """Tests for load_config_from_env."""

    def test_minimal(self):
        config = load_config_from_env({'MONITOR_DOMAINS': 'example.com, api.example.com ,'})

        assert config.domains == ['example.com', 'api.example.com']
        assert config.concurrent == DEFAULT_CONCURRENT
        assert config.run_timeout == DEFAULT_RUN_TIMEOUT
        assert config.output_dir == DEFAULT_OUTPUT_DIR
        assert not config.email.enabled

    def test_missing_domains(self):
        with pytest.raises(ConfigurationError, match="MONITOR_DOMAINS"):
            load_config_from_env({})

    def test_all_values(self):
        config = load_config_from_env({
            'MONITOR_DOMAINS': 'example.com',
            'MONITOR_TIMEOUT': '10s',
            'MONITOR_CONCURRENT': '8',
            'MONITOR_RUN_TIMEOUT': '2m',
            'API_URL': 'https://collector.example.com/reports',
            'API_KEY': 'secret',
            'USER_AGENT': 'Probe/1.0',
            'ENVIRONMENT': 'staging',
            'OUTPUT_DIR': '/tmp/reports',
            'SLACK_WEBHOOK_URL': 'https://hooks.slack.com/x',
            'DISCORD_WEBHOOK_URL': 'https://discord.com/api/webhooks/x',
            'EMAIL_USER': 'monitor@example.com',
            'EMAIL_AUTH': 'app-password',
            'EMAIL_TO': 'ops@example.com,dev@example.com',
            'SMTP_HOST': 'smtp.example.com',
            'SMTP_PORT': '2525',
        })

        assert config.timeout == 10.0
        assert config.concurrent == 8
        assert config.run_timeout == 120.0
        assert config.api_url == 'https://collector.example.com/reports'
        assert config.api_key == 'secret'
        assert config.user_agent == 'Probe/1.0'
        assert config.environment == 'staging'
        assert config.output_dir == '/tmp/reports'
        assert config.slack_webhook == 'https://hooks.slack.com/x'
        assert config.discord_webhook == 'https://discord.com/api/webhooks/x'
        assert config.email.to == ['ops@example.com', 'dev@example.com']
        assert config.email.smtp_host == 'smtp.example.com'
        assert config.email.smtp_port == 2525
        assert config.email.enabled

    def test_invalid_optional_values_fall_back(self):
        config = load_config_from_env({
            'MONITOR_DOMAINS': 'example.com',
            'MONITOR_TIMEOUT': 'soon',
            'MONITOR_CONCURRENT': 'many',
        })

        assert config.timeout == 30.0
        assert config.concurrent == DEFAULT_CONCURRENT

    def test_zero_concurrency_rejected(self):
        with pytest.raises(ConfigurationError, match="Concurrency"):
            load_config_from_env({'MONITOR_DOMAINS': 'example.com', 'MONITOR_CONCURRENT': '0'})


class TestLoadConfigFile:
    """Tests for load_config_file."""

    def test_yaml(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text(
            "domains:\n"
            "  - example.com\n"
            "  - https://api.example.com/health\n"
            "concurrent: 3\n"
            "timeout: 15s\n"
            "run_timeout: 5m\n"
            "environment: staging\n"
            "retry:\n"
            "  max_retries: 2\n"
            "  initial_backoff: 500ms\n"
            "rate_limit:\n"
            "  requests_per_second: 4\n"
            "  burst: 8\n"
            "email:\n"
            "  user: monitor@example.com\n"
            "  auth: secret\n"
            "  to: ops@example.com\n"
        )

        config = load_config_file(str(path))

        assert config.domains == ['example.com', 'https://api.example.com/health']
        assert config.concurrent == 3
        assert config.timeout == 15.0
        assert config.run_timeout == 300.0
        assert config.environment == 'staging'
        assert config.retry == RetryPolicy(max_retries=2, initial_backoff=0.5)
        assert config.requests_per_second == 4.0
        assert config.burst_size == 8
        assert config.email.to == ['ops@example.com']

    def test_json(self, tmp_path):
        path = tmp_path / "monitor.json"
        path.write_text(json.dumps({"domains": ["example.com"], "concurrent": 2}))

        config = load_config_file(str(path))

        assert config.domains == ['example.com']
        assert config.concurrent == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(str(tmp_path / "nope.yaml"))

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "monitor.toml"
        path.write_text("domains = []")

        with pytest.raises(ConfigurationError, match="Unsupported file format"):
            load_config_file(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text("domains: [example.com\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config_file(str(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text("")

        with pytest.raises(ConfigurationError, match="empty"):
            load_config_file(str(path))

    def test_domains_must_be_list(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text("domains: example.com\n")

        with pytest.raises(ConfigurationError, match="'domains' must be a list"):
            load_config_file(str(path))

    def test_invalid_retry_policy(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text("domains: [example.com]\nretry:\n  max_retries: -1\n")

        with pytest.raises(ConfigurationError):
            load_config_file(str(path))

    def test_invalid_duration(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text("domains: [example.com]\ntimeout: forever\n")

        with pytest.raises(ConfigurationError):
            load_config_file(str(path))


class TestDefaultConfigPath:
    """Tests for get_default_config_path."""

    def test_prefers_yaml(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "monitor.json").write_text("{}")
        (tmp_path / "monitor.yaml").write_text("")

        assert get_default_config_path() == "monitor.yaml"

    def test_falls_back_to_json(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "monitor.json").write_text("{}")

        assert get_default_config_path() == "monitor.json"

    def test_none_found(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert get_default_config_path() is None


class TestMonitorConfig:
    """Tests for MonitorConfig helpers and validation."""

    def test_with_overrides_ignores_none(self):
        config = MonitorConfig(domains=['example.com'], concurrent=3)

        updated = config.with_overrides(concurrent=None, run_timeout=60.0)

        assert updated.concurrent == 3
        assert updated.run_timeout == 60.0
        assert config.run_timeout == DEFAULT_RUN_TIMEOUT

    def test_create_rate_limiter(self):
        config = MonitorConfig(domains=['example.com'], requests_per_second=2.0, burst_size=4)

        limiter = config.create_rate_limiter()

        assert limiter.rate == 2.0
        assert limiter.burst == 4

    @pytest.mark.parametrize("changes,message", [
        ({'domains': []}, "At least one domain"),
        ({'domains': ['  ']}, "cannot be empty"),
        ({'timeout': 0}, "Timeout"),
        ({'run_timeout': -1}, "Run timeout"),
        ({'requests_per_second': 0}, "Rate limit"),
        ({'burst_size': 0}, "Burst size"),
    ])
    def test_validate_rejects(self, changes, message):
        config = MonitorConfig(domains=['example.com'])
        for key, value in changes.items():
            setattr(config, key, value)

        with pytest.raises(ConfigurationError, match=message):
            validate_config(config)

    def test_email_enabled_requires_all_fields(self):
        assert not EmailConfig(user='a', auth='b').enabled
        assert EmailConfig(user='a', auth='b', to=['c']).enabled
