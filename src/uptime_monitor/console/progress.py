"""Progress bar for a monitoring run, driven by orchestrator events."""

import time
from typing import Dict, List, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from ..events import CheckObserver
from ..models import HealthCheckResult, MonitorReport, STATUS_DEGRADED, STATUS_DOWN, STATUS_UP
from .themes import ICONS, STATUS_COLORS


class ProgressTracker(CheckObserver):
    """
    도메인 체크 진행 상황 표시

    A CheckObserver that advances a Rich progress bar as probes complete
    and keeps running up/degraded/down counts next to it. Failed domains
    are printed above the bar as they finish.
    """

    def __init__(self, console: Console, total_domains: int):
        """
        Args:
            console: Rich Console 인스턴스
            total_domains: 전체 도메인 수 (run_started 에서 갱신됨)
        """
        self.console = console
        self.total_domains = total_domains
        self.start_time: Optional[float] = None
        self.task_id: Optional[TaskID] = None
        self.counts: Dict[str, int] = {STATUS_UP: 0, STATUS_DEGRADED: 0, STATUS_DOWN: 0}

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("{task.fields[tally]}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )

    def _tally(self) -> str:
        return " ".join(
            f"[{STATUS_COLORS[status]}]{count}[/{STATUS_COLORS[status]}]"
            for status, count in self.counts.items()
        )

    def start(self) -> None:
        self.start_time = time.monotonic()
        self.progress.start()
        self.task_id = self.progress.add_task(
            "[cyan]Probing...",
            total=self.total_domains,
            tally=self._tally(),
        )

    def run_started(self, domains: List[str]) -> None:
        if self.task_id is None:
            self.total_domains = len(domains)
            self.start()

    def check_started(self, domain: str) -> None:
        if self.task_id is not None:
            self.progress.update(self.task_id, description=f"[cyan]{domain}")

    def retry_scheduled(self, domain: str, attempt: int, backoff: float, reason: str) -> None:
        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                description=f"[yellow]{domain} retry {attempt + 1} in {backoff:.1f}s ({reason})",
            )

    def probe_completed(self, result: HealthCheckResult) -> None:
        """체크 완료: 카운트 갱신 후 진행 바 전진"""
        if self.task_id is None:
            return

        if result.status in self.counts:
            self.counts[result.status] += 1
        self.progress.update(self.task_id, advance=1, tally=self._tally())

        if result.is_failure:
            color = STATUS_COLORS.get(result.status, 'white')
            detail = f" [dim]{result.error_message}[/dim]" if result.error_message else ""
            self.progress.console.print(f"  [{color}]{result.status.upper():<8}[/{color}] {result.domain}{detail}")

    def run_completed(self, report: MonitorReport, elapsed: float) -> None:
        self.finish(elapsed)

    def finish(self, total_time: Optional[float] = None) -> None:
        """
        진행 바 종료 (여러 번 호출해도 안전)

        Args:
            total_time: 전체 실행 시간 (초). None이면 start 이후 경과 시간
        """
        if self.task_id is None:
            return

        if total_time is None and self.start_time is not None:
            total_time = time.monotonic() - self.start_time

        self.progress.stop()
        self.task_id = None

        if total_time is not None:
            self.console.print(
                f"[bold green]{ICONS['success']}[/bold green] Checked {self.total_domains} domain(s) "
                f"in [bold cyan]{total_time:.2f}[/bold cyan] seconds "
                f"({self._tally()} up/degraded/down)"
            )
