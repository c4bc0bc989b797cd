"""Central console output manager for Rich-formatted output.

ConsoleManager owns the Console used by the CLI, the progress tracker and
the reporter, so every message shares one theme and honours debug mode.
"""

from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.traceback import Traceback

from .themes import ICONS, get_theme

if TYPE_CHECKING:
    from ..config import MonitorConfig


# (keywords, suggestion); the first entry whose keyword appears in the
# lower-cased message wins.
ERROR_SUGGESTIONS: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("file not found", "no such file"),
     "Check the configuration path. Without --file, monitor.yaml or monitor.json is read from the current directory."),
    (("monitor_domains", "at least one domain"),
     "Pass --file, repeat -d/--domain, or set MONITOR_DOMAINS to a comma-separated list."),
    (("run deadline",),
     "Raise --run-timeout or --concurrency so every domain is checked before the deadline."),
    (("rate limiter", "http 429"),
     "Lower rate_limit.requests_per_second or raise rate_limit.burst in the configuration."),
    (("timed out", "timeout"),
     "The endpoint is slow or unreachable. Raise --timeout if slow responses are expected."),
    (("dns resolution", "name or service not known"),
     "Verify the domain name and that it resolves from this host."),
    (("connection refused",),
     "Nothing is listening on the target port. Verify the service is running."),
    (("tls", "ssl", "certificate"),
     "The certificate could not be verified. It may be expired, self-signed or issued for another name."),
    (("permission denied",),
     "Check permissions on the output directory and log file."),
)


def get_error_suggestion(message: str) -> Optional[str]:
    """Return a hint for a known error message, or None."""
    message_lower = message.lower()
    for keywords, suggestion in ERROR_SUGGESTIONS:
        if any(keyword in message_lower for keyword in keywords):
            return suggestion
    return None


class ConsoleManager:
    """Central console output manager.

    Attributes:
        console: Rich Console instance
        debug_mode: Whether debug mode is enabled
        theme: Rich Theme for consistent styling
    """

    def __init__(self, debug_mode: bool = False, console: Optional[Console] = None):
        """Initialize the ConsoleManager.

        Args:
            debug_mode: If True, display info messages and stack traces
            console: Console to write to (default: a themed stdout console)
        """
        self.debug_mode = debug_mode
        self.theme = get_theme()
        if console is None:
            console = Console(theme=self.theme)
        else:
            console.push_theme(self.theme)
        self.console = console

    def print_banner(self, version: str, config: 'MonitorConfig', config_source: str) -> None:
        """Show the run settings before checks start.

        Args:
            version: Application version string
            config: Effective configuration for the run
            config_source: Config file path, "environment" or "command line"
        """
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="label", no_wrap=True)
        grid.add_column(style="value")

        channels = [name for name, enabled in (
            ("disk", True),
            ("api", bool(config.api_url)),
            ("slack", bool(config.slack_webhook)),
            ("discord", bool(config.discord_webhook)),
            ("email fallback", config.email.enabled),
        ) if enabled]

        grid.add_row(f"{ICONS['config']} Config", config_source)
        grid.add_row(f"{ICONS['domain']} Domains", str(len(config.domains)))
        grid.add_row(f"{ICONS['time']} Concurrency", f"{config.concurrent} (timeout {config.timeout:g}s)")
        grid.add_row(f"{ICONS['deadline']} Run deadline", f"{config.run_timeout:g}s")
        grid.add_row("  Rate limit", f"{config.requests_per_second:g}/s, burst {config.burst_size}")
        grid.add_row("  Environment", config.environment)
        grid.add_row("  Delivery", ", ".join(channels))
        if self.debug_mode:
            grid.add_row(Text(f"{ICONS['warning']} Debug", style="warning"), Text("ENABLED", style="bold yellow"))

        self.console.print(Panel(
            grid,
            title=f"[bold cyan]{config.service_name}[/bold cyan] [dim]v{version}[/dim]",
            border_style="cyan",
            padding=(1, 2),
        ))
        self.console.print()

    def print_error(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None,
        show_traceback: bool = False
    ) -> None:
        """Display an error panel with context and a suggestion if one applies.

        Args:
            message: Error message to display
            details: Optional dictionary with additional context
            exception: Exception whose traceback is shown in debug mode
            show_traceback: Show the traceback even outside debug mode
        """
        body = Table.grid(padding=(0, 1))
        body.add_column()
        body.add_row(Text(f"{ICONS['error']} {message}", style="error"))

        if details:
            context = Table.grid(padding=(0, 2))
            context.add_column(style="label")
            context.add_column(style="value")
            for key, value in details.items():
                context.add_row(key.replace('_', ' ').title(), str(value))
            body.add_row("")
            body.add_row(context)

        suggestion = get_error_suggestion(message)
        if suggestion:
            body.add_row("")
            body.add_row(Text(f"{ICONS['info']} {suggestion}", style="info"))

        self.console.print(Panel(body, title="[bold red]Error[/bold red]", border_style="red", padding=(1, 2)))

        if exception is not None and (self.debug_mode or show_traceback):
            self.console.print(Traceback.from_exception(
                type(exception), exception, exception.__traceback__, show_locals=False
            ))

    def print_error_group(self, errors: List[Dict[str, Any]]) -> None:
        """Display per-domain failures in one table, sectioned by error type.

        Args:
            errors: Dictionaries with 'domain', 'error_type' and 'message'
        """
        if not errors:
            return

        grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for error in errors:
            grouped[error.get('error_type') or 'Unknown'].append(error)

        table = Table(
            title=f"[bold red]{ICONS['error']} {len(errors)} failure(s)[/bold red]",
            header_style="bold cyan",
            border_style="red",
        )
        table.add_column("Type", style="bold")
        table.add_column("Domain", style="cyan", no_wrap=True)
        table.add_column("Message")

        for error_type in sorted(grouped):
            for index, error in enumerate(grouped[error_type]):
                table.add_row(
                    error_type if index == 0 else "",
                    error.get('domain', 'N/A'),
                    error.get('message') or 'Unknown error',
                )
            table.add_section()

        self.console.print()
        self.console.print(table)

        hints = {get_error_suggestion(e.get('message') or '') for e in errors}
        for hint in sorted(h for h in hints if h):
            self.console.print(f"  {ICONS['info']} {hint}", style="info")
        self.console.print()

    def print_success(self, message: str) -> None:
        self.console.print(f"{ICONS['success']} {message}", style="success")

    def print_warning(self, message: str) -> None:
        self.console.print(f"{ICONS['warning']} {message}", style="warning")

    def print_info(self, message: str) -> None:
        """Display info message (only in debug mode)."""
        if self.debug_mode:
            self.console.print(f"{ICONS['info']} {message}", style="info")
