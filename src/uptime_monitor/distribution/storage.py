"""Durable storage of monitor reports as JSON files."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..models import MonitorReport

logger = logging.getLogger(__name__)


REPORT_FILE_PREFIX = "uptime_report_"


def report_filename(timestamp: Optional[datetime] = None) -> str:
    """File name for a report saved at the given local time."""
    timestamp = timestamp or datetime.now()
    return f"{REPORT_FILE_PREFIX}{timestamp.strftime('%Y%m%d_%H%M%S')}.json"


def save_report(report: MonitorReport, output_dir: str, timestamp: Optional[datetime] = None) -> Path:
    """
    Write a report to `output_dir` as indented JSON.

    Args:
        report: Report to save
        output_dir: Directory for report files (created if missing)
        timestamp: Time used in the file name (defaults to now)

    Returns:
        Path of the written file

    Raises:
        OSError: If the directory or file cannot be written
        TypeError: If the report cannot be serialized
    """
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)

    output_path = directory / report_filename(timestamp)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, indent=2)

    logger.info(f"Report saved: {output_path}")
    return output_path
