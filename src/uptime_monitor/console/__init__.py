"""
Console output for the uptime monitor: the shared ConsoleManager, the run
progress bar and the status colour theme.
"""

from .output import ConsoleManager, get_error_suggestion
from .progress import ProgressTracker
from .themes import get_theme, ICONS, STATUS_COLORS, STATUS_ICONS, SUMMARY_COLORS

__all__ = [
    'ConsoleManager',
    'ProgressTracker',
    'get_error_suggestion',
    'get_theme',
    'ICONS',
    'STATUS_COLORS',
    'STATUS_ICONS',
    'SUMMARY_COLORS',
]
