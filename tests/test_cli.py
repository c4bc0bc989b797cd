"""
Tests for the command-line interface.

Checks run against a mocked monitoring pass so no network access happens.
"""

import json
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from uptime_monitor.distribution import DistributionOutcome
from uptime_monitor.distribution.storage import save_report
from uptime_monitor.executor import generate_report
from uptime_monitor.main import cli, resolve_config
from uptime_monitor.models import HealthCheckResult, STATUS_DOWN, STATUS_UP


def make_report(statuses):
    results = [
        HealthCheckResult(
            domain=domain,
            url=f"https://{domain}",
            status=status,
            status_code=200 if status == STATUS_UP else 503,
            response_time_ms=120,
            error_message=None if status == STATUS_UP else "HTTP 503",
        )
        for domain, status in statuses.items()
    ]
    return generate_report(results, service="Uptime Monitor", environment="test")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run each command in an empty directory with no monitor settings."""
    monkeypatch.chdir(tmp_path)
    for name in ('MONITOR_DOMAINS', 'LOG_LEVEL', 'OUTPUT_DIR', 'API_URL',
                 'SLACK_WEBHOOK_URL', 'DISCORD_WEBHOOK_URL'):
        monkeypatch.delenv(name, raising=False)

    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    yield
    for handler in root_logger.handlers[:]:
        if handler not in handlers:
            handler.close()
            root_logger.removeHandler(handler)


class TestCheckCommand:
    """Tests for `uptime-monitor check`."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_help(self):
        result = self.runner.invoke(cli, ['check', '--help'])

        assert result.exit_code == 0
        assert '--run-timeout' in result.output

    @patch('uptime_monitor.main.run_monitor', new_callable=AsyncMock)
    def test_all_up_exits_zero(self, mock_run):
        mock_run.return_value = (make_report({"example.com": STATUS_UP}), DistributionOutcome())

        result = self.runner.invoke(cli, ['check', '-d', 'example.com', '--no-save', '--no-submit', '--no-notify'])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args.args[0]
        assert config.domains == ['example.com']
        assert mock_run.call_args.kwargs == {'save': False, 'submit': False, 'notify': False}

    @patch('uptime_monitor.main.run_monitor', new_callable=AsyncMock)
    def test_downtime_exits_one(self, mock_run):
        report = make_report({"example.com": STATUS_UP, "broken.example.com": STATUS_DOWN})
        mock_run.return_value = (report, DistributionOutcome())

        result = self.runner.invoke(cli, ['check', '-d', 'example.com', '-d', 'broken.example.com', '--no-save'])

        assert result.exit_code == 1

    @patch('uptime_monitor.main.run_monitor', new_callable=AsyncMock)
    def test_overrides_applied(self, mock_run):
        mock_run.return_value = (make_report({"example.com": STATUS_UP}), DistributionOutcome())

        result = self.runner.invoke(cli, [
            'check', '-d', 'example.com',
            '--concurrency', '3', '--timeout', '5s', '--run-timeout', '2m', '--output-dir', 'out',
        ])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args.args[0]
        assert config.concurrent == 3
        assert config.timeout == 5.0
        assert config.run_timeout == 120.0
        assert config.output_dir == 'out'

    def test_missing_domains(self):
        result = self.runner.invoke(cli, ['check'])

        assert result.exit_code == 1
        assert 'Configuration error' in result.output

    def test_invalid_timeout(self):
        result = self.runner.invoke(cli, ['check', '-d', 'example.com', '--timeout', 'forever'])

        assert result.exit_code == 2

    def test_unsupported_output_format(self):
        result = self.runner.invoke(cli, ['check', '-d', 'example.com', '-o', 'results.txt'])

        assert result.exit_code != 0
        assert 'Unsupported output format' in result.output

    @patch('uptime_monitor.main.run_monitor', new_callable=AsyncMock)
    def test_json_export(self, mock_run, tmp_path):
        mock_run.return_value = (make_report({"example.com": STATUS_UP}), DistributionOutcome())

        result = self.runner.invoke(cli, ['check', '-d', 'example.com', '-o', 'results.json', '--view', 'summary'])

        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / 'results.json').read_text())
        assert data['results'][0]['domain'] == 'example.com'

    @patch('uptime_monitor.main.run_monitor', new_callable=AsyncMock)
    def test_csv_export(self, mock_run, tmp_path):
        mock_run.return_value = (make_report({"example.com": STATUS_UP}), DistributionOutcome())

        result = self.runner.invoke(cli, ['check', '-d', 'example.com', '-o', 'results.csv'])

        assert result.exit_code == 0, result.output
        assert 'example.com' in (tmp_path / 'results.csv').read_text()

    @patch('uptime_monitor.main.run_monitor', new_callable=AsyncMock)
    def test_writes_log_file(self, mock_run, tmp_path):
        mock_run.return_value = (make_report({"example.com": STATUS_UP}), DistributionOutcome())

        self.runner.invoke(cli, ['check', '-d', 'example.com'])

        assert (tmp_path / 'uptime-monitor.log').exists()


class TestResolveConfig:
    """Tests for resolve_config."""

    def test_file_with_domain_override(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text("domains: [configured.example.com]\nconcurrent: 2\n")

        config, source = resolve_config(str(path), ['other.example.com'])

        assert config.domains == ['other.example.com']
        assert config.concurrent == 2
        assert source == str(path)

    def test_default_file_in_working_directory(self, tmp_path):
        (tmp_path / "monitor.yaml").write_text("domains: [configured.example.com]\n")

        config, source = resolve_config(None, ())

        assert config.domains == ['configured.example.com']
        assert source == "monitor.yaml"

    def test_command_line_domains(self):
        config, source = resolve_config(None, ['a.example.com', 'b.example.com'])

        assert config.domains == ['a.example.com', 'b.example.com']
        assert source == "command line"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv('MONITOR_DOMAINS', 'env.example.com')

        config, source = resolve_config(None, ())

        assert config.domains == ['env.example.com']
        assert source == "environment"


class TestSummaryCommand:
    """Tests for `uptime-monitor summary`."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_summarizes_saved_reports(self, tmp_path):
        report = make_report({"example.com": STATUS_UP, "broken.example.com": STATUS_DOWN})
        save_report(report, str(tmp_path / 'reports'))

        result = self.runner.invoke(cli, [
            'summary', '--output-dir', 'reports', '--cache', 'summaries.json',
        ])

        assert result.exit_code == 0, result.output
        assert 'broken.example.com' in result.output
        assert 'Partial' in result.output

        rows = json.loads((tmp_path / 'summaries.json').read_text())
        assert {row['domain'] for row in rows} == {'example.com', 'broken.example.com'}
        assert rows[0]['date'] == datetime.now(timezone.utc).date().isoformat()

    def test_no_reports(self):
        result = self.runner.invoke(cli, ['summary', '--output-dir', 'missing'])

        assert result.exit_code == 0
        assert 'No reports found' in result.output
