"""
Enums for keyrelay application
"""

from enum import Enum


class AttemptOutcome(str, Enum):
    """Result of a single upstream attempt inside the forwarding loop"""
    SUCCESS = "success"                  # Terminal, passed through verbatim
    RATE_LIMITED = "rate_limited"        # 429, key cools down
    UNAUTHORIZED = "unauthorized"        # 401/403, key marked dead
    TRANSPORT_ERROR = "transport_error"  # Network failure or timeout
    SKIPPED = "skipped"                  # Active key ineligible, no call made


class LogOrder(str, Enum):
    """Ordering for activity log slices"""
    NEWEST_FIRST = "newest"
    OLDEST_FIRST = "oldest"
