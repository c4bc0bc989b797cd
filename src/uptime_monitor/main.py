"""
CLI entry point for the uptime monitor.

Provides command-line interface for running a monitoring pass over the
configured domains and for summarizing saved reports by day.
"""

import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional, Sequence, Tuple

import click

from . import __version__
from .config import (
    DEFAULT_OUTPUT_DIR,
    MonitorConfig,
    get_default_config_path,
    load_config_file,
    load_config_from_env,
    parse_duration,
    validate_config,
)
from .console.output import ConsoleManager
from .console.progress import ProgressTracker
from .distribution import DistributionOutcome, ReportDistributor
from .errors import ConfigurationError
from .events import CheckObserver, CompositeObserver, LoggingObserver
from .executor import CheckOrchestrator
from .models import MonitorReport
from .reporter import Reporter, display_daily_summaries
from .summary import SummaryCache, load_reports, summarize_reports


# Configure module logger
logger = logging.getLogger(__name__)

LOG_FILE = 'uptime-monitor.log'


def setup_logging(log_level: str, debug_mode: bool = False) -> None:
    """
    Configure logging with specified level and debug mode.

    The log file always receives records at `log_level`. The console only
    shows log records in debug mode; otherwise Rich output is the only
    console output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        debug_mode: If True, display all logs to console
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    if debug_mode:
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
    else:
        console_handler.setLevel(logging.CRITICAL + 1)  # Suppress all logs

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logger.info(f"Logging initialized at {log_level} level (debug_mode={debug_mode})")


def resolve_config(file_path: Optional[str], domains: Sequence[str]) -> Tuple[MonitorConfig, str]:
    """
    Load configuration from a file or the environment.

    An explicit file wins, then monitor.yaml / monitor.json in the current
    directory, then environment variables. Domains given on the command line
    replace the configured ones.

    Returns:
        (config, description of where it came from)

    Raises:
        ConfigurationError: If no domains are configured anywhere
        FileNotFoundError: If the given file does not exist
    """
    if file_path is None and not domains:
        file_path = get_default_config_path()

    if file_path:
        config = load_config_file(file_path)
        if domains:
            config = config.with_overrides(domains=list(domains))
        return config, file_path

    environ = dict(os.environ)
    if domains:
        environ['MONITOR_DOMAINS'] = ','.join(domains)
        return load_config_from_env(environ), "command line"

    return load_config_from_env(environ), "environment"


def _duration_option(value: Optional[str], name: str) -> Optional[float]:
    if not value:
        return None
    try:
        return parse_duration(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=name)


async def run_monitor(
    config: MonitorConfig,
    observer: CheckObserver,
    save: bool = True,
    submit: bool = True,
    notify: bool = True,
) -> Tuple[MonitorReport, DistributionOutcome]:
    """Run one monitoring pass and distribute its report within config.run_timeout."""
    deadline = time.monotonic() + config.run_timeout
    orchestrator = CheckOrchestrator(config, observer=observer)
    report = await orchestrator.run_check()

    distributor = ReportDistributor(config, rate_limiter=orchestrator.rate_limiter)
    outcome = await distributor.distribute(
        report, save=save, submit=submit, notify=notify, deadline=deadline,
    )
    return report, outcome


@click.group()
@click.version_option(__version__, prog_name='uptime-monitor')
def cli() -> None:
    """
    Uptime Monitor

    Probe HTTP(S) endpoints for availability, latency and certificate
    expiry, and deliver the aggregated report.
    """
    pass


@cli.command(name='check')
@click.option(
    '-f', '--file',
    type=click.Path(exists=True),
    help='Path to configuration file (YAML/JSON)'
)
@click.option(
    '-d', '--domain', 'domains',
    multiple=True,
    help='Domain or URL to check (repeatable; replaces configured domains)'
)
@click.option('--concurrency', type=int, help='Maximum number of checks in flight')
@click.option('--timeout', type=str, help='Per-request timeout (e.g. 30s, 1m)')
@click.option('--run-timeout', type=str, help='Deadline for the whole run (e.g. 5m)')
@click.option('--output-dir', type=click.Path(), help='Directory for saved reports')
@click.option('--no-save', is_flag=True, default=False, help='Do not save the report to disk')
@click.option('--no-submit', is_flag=True, default=False, help='Do not submit the report to the API')
@click.option('--no-notify', is_flag=True, default=False, help='Do not send webhook notifications')
@click.option(
    '-o', '--output',
    type=click.Path(),
    help='Export file path (.json or .csv)'
)
@click.option(
    '--view',
    type=click.Choice(['table', 'summary'], case_sensitive=False),
    default='table',
    help='Display view mode (default: table)'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    default='INFO',
    envvar='LOG_LEVEL',
    help='Logging level (default: INFO)'
)
@click.option(
    '--debug',
    is_flag=True,
    default=False,
    help='Enable debug mode with verbose console output'
)
def check_command(
    file: Optional[str],
    domains: Tuple[str, ...],
    concurrency: Optional[int],
    timeout: Optional[str],
    run_timeout: Optional[str],
    output_dir: Optional[str],
    no_save: bool,
    no_submit: bool,
    no_notify: bool,
    output: Optional[str],
    view: str,
    log_level: str,
    debug: bool,
) -> None:
    """
    Check every configured domain once and report the results.

    Exits with status 1 when any domain is down.

    Examples:

        # Use monitor.yaml / monitor.json or MONITOR_DOMAINS
        uptime-monitor check

        # Check two domains with a one minute run deadline
        uptime-monitor check -d example.com -d https://api.example.com/health --run-timeout 1m

        # Export results to CSV without saving or notifying
        uptime-monitor check -f monitor.yaml -o results.csv --no-save --no-notify
    """
    setup_logging(log_level, debug_mode=debug)
    console_manager = ConsoleManager(debug_mode=debug)

    try:
        if output and Path(output).suffix.lower() not in ('.json', '.csv'):
            raise click.ClickException(
                f"Unsupported output format: {Path(output).suffix}. "
                "Please use .json or .csv extension."
            )

        config, config_source = resolve_config(file, domains)
        config = config.with_overrides(
            concurrent=concurrency,
            timeout=_duration_option(timeout, "--timeout"),
            run_timeout=_duration_option(run_timeout, "--run-timeout"),
            output_dir=output_dir,
        )
        validate_config(config)

        console_manager.print_banner(__version__, config, config_source)

        logger.info(f"Starting checks for {len(config.domains)} domain(s)")

        tracker = ProgressTracker(console_manager.console, len(config.domains))
        observer = CompositeObserver([LoggingObserver(), tracker])

        try:
            report, outcome = asyncio.run(run_monitor(
                config,
                observer,
                save=not no_save,
                submit=not no_submit,
                notify=not no_notify,
            ))
        finally:
            tracker.finish()

        reporter = Reporter(report, console_manager=console_manager)
        reporter.display_results(view)

        if output:
            if Path(output).suffix.lower() == '.json':
                reporter.export_json(output)
            else:
                reporter.export_csv(output)

        _print_outcome(console_manager, outcome)

        failures = [
            {'domain': r.domain, 'error_type': r.error_type, 'message': r.error_message}
            for r in report.results if r.error_message
        ]
        if debug:
            console_manager.print_error_group(failures)

        logger.info("Monitoring completed")

        if report.downtime_count > 0:
            sys.exit(1)

    except click.ClickException:
        raise

    except FileNotFoundError as e:
        logger.error(f"File not found: {str(e)}", exc_info=True)
        console_manager.print_error(
            f"File not found: {str(e)}",
            details={'error_type': 'FileNotFoundError'},
            exception=e
        )
        sys.exit(1)

    except ConfigurationError as e:
        logger.error(f"Configuration error: {str(e)}")
        console_manager.print_error(
            f"Configuration error: {str(e)}",
            details={'error_type': 'ConfigurationError'},
            exception=e
        )
        sys.exit(1)

    except Exception as e:
        error_msg = str(e) if str(e) else f"{type(e).__name__} occurred"
        logger.error(f"Unexpected error: {error_msg}", exc_info=True)
        console_manager.print_error(
            error_msg,
            details={
                'error_type': type(e).__name__,
                'log_file': LOG_FILE
            },
            exception=e
        )
        console_manager.print_info(f"Check '{LOG_FILE}' for detailed error information.")
        sys.exit(1)


def _print_outcome(console_manager: ConsoleManager, outcome: DistributionOutcome) -> None:
    if outcome.saved_path is not None:
        console_manager.print_success(f"Report saved: {outcome.saved_path}")
    if outcome.emailed:
        console_manager.print_success("Report emailed after storage failure")
    if outcome.submitted:
        console_manager.print_success("Report submitted to API")
    for channel in outcome.notified:
        console_manager.print_success(f"Notification sent to {channel}")
    for error in outcome.errors:
        console_manager.print_warning(f"Delivery failed ({error.channel}): {error}")


@cli.command(name='summary')
@click.option(
    '--output-dir',
    type=click.Path(),
    default=DEFAULT_OUTPUT_DIR,
    envvar='OUTPUT_DIR',
    show_default=True,
    help='Directory holding saved reports'
)
@click.option('--days', type=click.IntRange(min=1), default=7, show_default=True, help='Number of days to include')
@click.option('-d', '--domain', 'domains', multiple=True, help='Only summarize these domains (repeatable)')
@click.option('--interval', type=click.IntRange(min=1), default=10, show_default=True,
              help='Minutes between monitoring runs, used to estimate time down')
@click.option('--cache', type=click.Path(), help='JSON file to upsert the summaries into')
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    default='INFO',
    envvar='LOG_LEVEL',
    help='Logging level (default: INFO)'
)
def summary_command(
    output_dir: str,
    days: int,
    domains: Tuple[str, ...],
    interval: int,
    cache: Optional[str],
    log_level: str,
) -> None:
    """
    Summarize saved reports into per-domain daily status.

    Examples:

        uptime-monitor summary --days 30

        uptime-monitor summary -d example.com --cache summaries.json
    """
    setup_logging(log_level)
    console_manager = ConsoleManager()

    reports = load_reports(output_dir, days=days)
    summaries = summarize_reports(
        reports,
        domains=list(domains) if domains else None,
        interval_minutes=interval,
    )

    if cache and summaries:
        try:
            count = SummaryCache(cache).save(summaries)
        except OSError as e:
            logger.error(f"Failed to write summary cache: {e}")
            console_manager.print_warning(f"Failed to write summary cache: {e}")
        else:
            console_manager.print_success(f"Cached {count} summaries to {cache}")

    console_manager.console.print(
        f"[bold]Daily summaries[/bold] [dim]({len(reports)} report(s) from the last {days} day(s))[/dim]"
    )
    display_daily_summaries(console_manager, summaries)


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
