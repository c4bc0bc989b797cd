"""Colors, icons and the Rich theme shared by console output and reports."""

from rich.theme import Theme

from ..models import STATUS_DEGRADED, STATUS_DOWN, STATUS_UP
from ..summary import SUMMARY_ERROR, SUMMARY_OK, SUMMARY_WARNING

STATUS_COLORS = {
    STATUS_UP: 'green',
    STATUS_DEGRADED: 'yellow',
    STATUS_DOWN: 'bold red',
}

# Colors for daily summary classifications
SUMMARY_COLORS = {
    SUMMARY_OK: 'green',
    SUMMARY_WARNING: 'yellow',
    SUMMARY_ERROR: 'bold red',
}

ICONS = {
    'success': '✓',
    'error': '✗',
    'warning': '⚠',
    'info': 'ℹ',
    'time': '⏱',
    'domain': '🌐',
    'config': '⚙',
    'deadline': '⌛',
}

STATUS_ICONS = {
    STATUS_UP: ICONS['success'],
    STATUS_DEGRADED: ICONS['warning'],
    STATUS_DOWN: ICONS['error'],
}


def get_theme() -> Theme:
    """
    Build the console theme.

    Message styles (info, warning, error, success) are used by
    ConsoleManager; the status.* styles mirror STATUS_COLORS for markup
    such as "[status.down]".
    """
    styles = {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "label": "dim",
        "value": "white",
    }
    for status, color in STATUS_COLORS.items():
        styles[f"status.{status}"] = color
    return Theme(styles)
