"""
Utilities package - Logging and activity history for keyrelay
"""

from .logging import setup_logging
from .activity_log import ActivityLog, LogEntry

__all__ = [
    'setup_logging',
    'ActivityLog',
    'LogEntry'
]
