"""
Reporter layer for uptime monitoring.

Formats and outputs a MonitorReport in various formats including
rich tree and table display, JSON export, and CSV export.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .console.output import ConsoleManager
from .console.themes import STATUS_COLORS, STATUS_ICONS, SUMMARY_COLORS
from .models import (
    HealthCheckResult,
    MonitorReport,
    SSL_EXPIRY_WARNING_DAYS,
    STATUS_DEGRADED,
    STATUS_DOWN,
    STATUS_UP,
    THRESHOLD_ACCEPT_MS,
    THRESHOLD_FAST_MS,
)
from .summary import DailySummary


logger = logging.getLogger(__name__)


STATUS_PRIORITY = {
    STATUS_DOWN: 0,
    STATUS_DEGRADED: 1,
    STATUS_UP: 2,
}

CSV_FIELDS = [
    "domain",
    "url",
    "status",
    "status_code",
    "response_time_ms",
    "is_ssl",
    "ssl_days_left",
    "ssl_expiry",
    "attempts",
    "error_type",
    "error_message",
    "checked_at",
]


def latency_color(response_time_ms: int) -> str:
    """Green under 1s, yellow under 3s, red otherwise."""
    if response_time_ms < THRESHOLD_FAST_MS:
        return "green"
    if response_time_ms < THRESHOLD_ACCEPT_MS:
        return "yellow"
    return "red"


class Reporter:
    """
    Reporter for formatting and outputting a monitoring run.

    Handles display of results in tree and table format with color coding,
    and export to JSON and CSV formats.
    """

    def __init__(self, report: MonitorReport, console_manager: Optional[ConsoleManager] = None):
        """
        Initialize the reporter with a finished report.

        Args:
            report: MonitorReport from the orchestrator
            console_manager: ConsoleManager instance for Rich output
        """
        self.report = report
        self.console_manager = console_manager or ConsoleManager()
        self.console = self.console_manager.console

    @property
    def results(self) -> List[HealthCheckResult]:
        return list(self.report.results)

    def display_results(self, view_mode: str = 'table') -> None:
        """
        Display results in specified view mode.

        Args:
            view_mode: Display mode - 'table' or 'summary'
        """
        if view_mode == 'table':
            self.display_table()
        elif view_mode == 'summary':
            self.display_summary()
        else:
            logger.warning(f"Unknown view mode: {view_mode}, defaulting to table")
            self.display_table()

    def display_table(self) -> None:
        """
        Display results as a tree per domain, worst status first.

        Each domain shows its HTTP status, latency, certificate expiry and
        error (if any) as branches.
        """
        sorted_results = sorted(
            self.results,
            key=lambda r: STATUS_PRIORITY.get(r.status, 3)
        )

        self.console.print()
        self.console.print(f"[bold magenta]{self.report.service} Results[/bold magenta]")
        self.console.print()

        previous_status = None
        for result in sorted_results:
            # Add visual separator between status groups
            if previous_status is not None and previous_status != result.status:
                self.console.print()

            self.console.print(self._build_tree(result))
            previous_status = result.status

        self.console.print()
        self._display_totals()

    def _build_tree(self, result: HealthCheckResult) -> Tree:
        color = STATUS_COLORS.get(result.status, "white")
        icon = STATUS_ICONS.get(result.status, "?")

        label = f"[{color}]{icon} {result.domain}[/{color}]"
        if result.attempts > 1:
            label += f" [dim]({result.attempts} attempts)[/dim]"
        tree = Tree(label)

        code = str(result.status_code) if result.status_code else "-"
        tree.add(f"HTTP: [{color}]{code} {result.status.upper()}[/{color}]")

        lat_color = latency_color(result.response_time_ms)
        tree.add(f"Latency: [{lat_color}]{result.response_time_ms} ms[/{lat_color}]")

        if result.ssl_days_left is not None:
            ssl_color = "yellow" if result.ssl_days_left < SSL_EXPIRY_WARNING_DAYS else "green"
            if result.ssl_days_left < 0:
                ssl_color = "red"
            expiry = result.ssl_expiry.strftime('%Y-%m-%d') if result.ssl_expiry else "unknown"
            tree.add(f"SSL: [{ssl_color}]{result.ssl_days_left} days left[/{ssl_color}] [dim](expires {expiry})[/dim]")
        elif result.is_ssl:
            tree.add("[dim]SSL: not observed[/dim]")

        if result.error_message:
            tree.add(f"[red]Error:[/red] {result.error_message}")

        return tree

    def _display_totals(self) -> None:
        report = self.report
        self.console.print(f"[bold]Summary:[/bold] {report.total_checks} domain(s) checked")
        self.console.print(f"  [green]✓ Up:[/green] {report.uptime_count}")
        self.console.print(f"  [yellow]⚠ Degraded:[/yellow] {report.degraded_count}")
        self.console.print(f"  [red]✗ Down:[/red] {report.downtime_count}")
        self.console.print(
            f"  Uptime: [bold]{report.uptime_percent:.2f}%[/bold]  "
            f"Average latency: [bold]{report.average_latency_ms:.0f} ms[/bold]"
        )

    def display_summary(self) -> None:
        """Display one table row per domain under a summary panel."""
        report = self.report

        panel_text = Text()
        panel_text.append(f"Environment: {report.environment}\n", style="dim")
        panel_text.append(f"Uptime: {report.uptime_percent:.2f}%  ", style="bold")
        panel_text.append(f"Up {report.uptime_count}  ", style="green")
        panel_text.append(f"Degraded {report.degraded_count}  ", style="yellow")
        panel_text.append(f"Down {report.downtime_count}", style="red")

        self.console.print(Panel(
            panel_text,
            title=f"[bold]{report.service}[/bold]",
            border_style="red" if report.downtime_count else "cyan",
            padding=(1, 2),
        ))

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Domain", style="cyan", no_wrap=True)
        table.add_column("Status")
        table.add_column("Code", justify="right")
        table.add_column("Latency", justify="right")
        table.add_column("SSL Days", justify="right")
        table.add_column("Error", style="dim")

        for result in self.results:
            color = STATUS_COLORS.get(result.status, "white")
            table.add_row(
                result.domain,
                Text(result.status.upper(), style=color),
                str(result.status_code) if result.status_code else "-",
                Text(f"{result.response_time_ms} ms", style=latency_color(result.response_time_ms)),
                "-" if result.ssl_days_left is None else str(result.ssl_days_left),
                result.error_message or "",
            )

        self.console.print(table)
        self.console.print()

    def export_json(self, file_path: str) -> None:
        """
        Export the report to a JSON file.

        Args:
            file_path: Path where JSON file should be created
        """
        try:
            self.console.print(f"[cyan]Exporting to JSON:[/cyan] {file_path}")

            with self.console.status("[cyan]Exporting results to JSON...", spinner="dots"):
                output_path = Path(file_path)
                output_path.parent.mkdir(parents=True, exist_ok=True)

                with open(output_path, 'w', encoding='utf-8') as f:
                    json.dump(self.report.to_dict(), f, indent=2)

                file_size = output_path.stat().st_size

            size_kb = file_size / 1024
            if size_kb < 1024:
                size_str = f"{size_kb:.2f} KB"
            else:
                size_str = f"{size_kb / 1024:.2f} MB"

            logger.info(f"Results exported to JSON: {file_path}")
            self.console_manager.print_success(
                f"Results exported to: {file_path} ({size_str})"
            )

        except (OSError, TypeError) as e:
            error_msg = f"Failed to export JSON: {str(e)}"
            logger.error(error_msg, exc_info=True)
            self.console_manager.print_error(
                error_msg,
                details={'file_path': file_path}
            )
            raise

    def export_csv(self, file_path: str) -> None:
        """
        Export results to a CSV file, one row per domain.

        Args:
            file_path: Path where CSV file should be created
        """
        try:
            self.console.print(f"[cyan]Exporting to CSV:[/cyan] {file_path}")

            with self.console.status("[cyan]Exporting results to CSV...", spinner="dots"):
                rows = self._results_to_csv_rows()

                if not rows:
                    logger.warning("No results to export")
                    self.console_manager.print_warning("No results to export")
                    return

                output_path = Path(file_path)
                output_path.parent.mkdir(parents=True, exist_ok=True)

                with open(output_path, 'w', newline='', encoding='utf-8') as f:
                    writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
                    writer.writeheader()
                    writer.writerows(rows)

                row_count = len(rows)

            logger.info(f"Results exported to CSV: {file_path}")
            self.console_manager.print_success(
                f"Results exported to: {file_path} ({row_count} row{'s' if row_count != 1 else ''})"
            )

        except OSError as e:
            error_msg = f"Failed to export CSV: {str(e)}"
            logger.error(error_msg, exc_info=True)
            self.console_manager.print_error(
                error_msg,
                details={'file_path': file_path}
            )
            raise

    def _results_to_csv_rows(self) -> List[Dict[str, Any]]:
        rows = []
        for result in self.results:
            data = result.to_dict()
            rows.append({name: data.get(name, "") for name in CSV_FIELDS})
        return rows


def display_daily_summaries(console_manager: ConsoleManager, summaries: Dict[str, List[DailySummary]]) -> None:
    """
    Print daily summaries, one table per domain.

    Args:
        console_manager: ConsoleManager to print with
        summaries: Output of summarize_reports
    """
    console = console_manager.console

    if not summaries:
        console_manager.print_warning("No reports found to summarize")
        return

    for domain in sorted(summaries):
        table = Table(
            title=f"[bold cyan]{domain}[/bold cyan]",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Date", no_wrap=True)
        table.add_column("Status")
        table.add_column("Time Down", justify="right")
        table.add_column("Checks", justify="right")
        table.add_column("Description", style="dim")

        for summary in summaries[domain]:
            color = SUMMARY_COLORS.get(summary.status, "white")
            table.add_row(
                summary.display_date,
                Text(summary.title, style=color),
                summary.time_down,
                f"{summary.down_checks}/{summary.total_checks}",
                summary.description,
            )

        console.print(table)
        console.print()
