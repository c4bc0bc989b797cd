"""
Daily per-domain summaries built from saved reports.

Each saved report contributes one check per domain; checks are grouped by
UTC calendar day and the number of down checks decides the day's status.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .distribution.storage import REPORT_FILE_PREFIX
from .models import MonitorReport, STATUS_DOWN

logger = logging.getLogger(__name__)


DEFAULT_INTERVAL_MINUTES = 10
MAJOR_OUTAGE_DOWN_CHECKS = 10

SUMMARY_OK = "ok"
SUMMARY_WARNING = "warning"
SUMMARY_ERROR = "error"


@dataclass
class DailySummary:
    """One domain's health over one calendar day."""
    domain: str
    date: date
    status: str
    title: str
    description: str
    time_down: str
    down_checks: int = 0
    total_checks: int = 0

    @property
    def display_date(self) -> str:
        return self.date.strftime('%b %d %Y')

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data['date'] = self.date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> 'DailySummary':
        return cls(
            domain=str(data['domain']),
            date=date.fromisoformat(str(data['date'])),
            status=str(data.get('status', SUMMARY_OK)),
            title=str(data.get('title', '')),
            description=str(data.get('description', '')),
            time_down=str(data.get('time_down') or '0m'),
            down_checks=int(data.get('down_checks', 0)),
            total_checks=int(data.get('total_checks', 0)),
        )


def format_time_down(minutes: int) -> str:
    """Format minutes as "Xh Ym", or "Ym" under an hour."""
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def load_reports(output_dir: str, days: Optional[int] = None) -> List[MonitorReport]:
    """
    Load saved reports from a directory, oldest first.

    Files that cannot be read or parsed are skipped with a warning.

    Args:
        output_dir: Directory holding uptime_report_*.json files
        days: Only keep reports from the last `days` days

    Returns:
        List of MonitorReport
    """
    directory = Path(output_dir)
    if not directory.is_dir():
        logger.warning(f"Report directory not found: {output_dir}")
        return []

    cutoff = None
    if days is not None:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

    reports = []
    for path in sorted(directory.glob(f"{REPORT_FILE_PREFIX}*.json")):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                report = MonitorReport.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Skipping unreadable report {path.name}: {e}")
            continue

        if cutoff is not None and report.timestamp < cutoff:
            continue
        reports.append(report)

    reports.sort(key=lambda r: r.timestamp)
    logger.debug(f"Loaded {len(reports)} report(s) from {output_dir}")
    return reports


def summarize_reports(
    reports: Iterable[MonitorReport],
    domains: Optional[Sequence[str]] = None,
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
) -> Dict[str, List[DailySummary]]:
    """
    Group checks by domain and day and classify each day.

    A day with at least 10 down checks is a major outage, any down check
    makes it a partial outage. Time down is estimated as down checks times
    the monitoring interval.

    Args:
        reports: Reports to summarize
        domains: Restrict to these domains (default: every domain seen)
        interval_minutes: Minutes between monitoring runs

    Returns:
        Mapping of domain to its daily summaries, newest day first
    """
    grouped: Dict[str, Dict[date, List[str]]] = {}

    for report in reports:
        day = report.timestamp.astimezone(timezone.utc).date()
        for result in report.results:
            if domains is not None and result.domain not in domains:
                continue
            grouped.setdefault(result.domain, {}).setdefault(day, []).append(result.status)

    summaries: Dict[str, List[DailySummary]] = {}
    for domain, days in grouped.items():
        daily = [_summarize_day(domain, day, statuses, interval_minutes) for day, statuses in days.items()]
        daily.sort(key=lambda s: s.date, reverse=True)
        summaries[domain] = daily

    return summaries


def _summarize_day(domain: str, day: date, statuses: List[str], interval_minutes: int) -> DailySummary:
    down_count = sum(1 for s in statuses if s == STATUS_DOWN)
    time_down = format_time_down(down_count * interval_minutes)

    if down_count >= MAJOR_OUTAGE_DOWN_CHECKS:
        status, title = SUMMARY_ERROR, "Major Outage"
        description = f"{domain} experienced extended downtime ({time_down})."
    elif down_count > 0:
        status, title = SUMMARY_WARNING, "Partial Outage"
        description = f"{domain} had intermittent downtime ({time_down})."
    else:
        status, title = SUMMARY_OK, "Operational"
        description = "No issues recorded today"

    return DailySummary(
        domain=domain,
        date=day,
        status=status,
        title=title,
        description=description,
        time_down=time_down,
        down_checks=down_count,
        total_checks=len(statuses),
    )


class SummaryCache:
    """JSON file of daily summaries keyed by (domain, date)."""

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict[tuple, DailySummary]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                rows = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable summary cache {self.path}: {e}")
            return {}

        entries = {}
        for row in rows:
            try:
                summary = DailySummary.from_dict(row)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed cache entry: {e}")
                continue
            entries[(summary.domain, summary.date)] = summary
        return entries

    def save(self, summaries: Dict[str, List[DailySummary]]) -> int:
        """
        Upsert summaries into the cache file.

        Returns:
            Number of summaries written
        """
        entries = self._load()
        count = 0
        for daily in summaries.values():
            for summary in daily:
                entries[(summary.domain, summary.date)] = summary
                count += 1

        self.path.parent.mkdir(parents=True, exist_ok=True)
        rows = sorted(entries.values(), key=lambda s: (s.domain, s.date))
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump([s.to_dict() for s in rows], f, indent=2)

        logger.info(f"Cached {count} summaries to {self.path}")
        return count

    def get(self, domains: Sequence[str], days: int) -> List[DailySummary]:
        """Cached summaries for the given domains from the last `days` days."""
        since = datetime.now(timezone.utc).date() - timedelta(days=days)
        return [
            s for s in self._load().values()
            if s.domain in domains and s.date >= since
        ]
