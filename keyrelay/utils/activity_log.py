"""
Fixed-capacity history of recent forwarding outcomes
"""

from collections import Counter, deque
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Any, List

from .logging import setup_logging

logger = setup_logging()

DEFAULT_CAPACITY = 500


@dataclass(frozen=True)
class LogEntry:
    """Immutable record of one completed forwarding call"""
    ts: str
    key_index: int          # 1-based, 0 when every key was exhausted
    user: str               # Truncated last user message
    reply: str              # Truncated response body, empty on exhaustion
    latency_ms: int
    status: int

    @classmethod
    def create(cls, key_index: int, user: str, reply: str,
               latency_ms: int, status: int) -> "LogEntry":
        return cls(
            ts=datetime.now(timezone.utc).isoformat(),
            key_index=key_index,
            user=user,
            reply=reply,
            latency_ms=latency_ms,
            status=status
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ActivityLog:
    """Ring buffer of LogEntry records; the oldest entry is evicted on overflow"""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Activity log capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: deque = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: LogEntry):
        self._entries.append(entry)

    def recent(self, limit: int = 20, newest_first: bool = False) -> List[LogEntry]:
        """Return at most ``limit`` of the most recent entries"""
        if limit <= 0:
            return []

        entries = list(self._entries)[-limit:]
        if newest_first:
            entries.reverse()
        return entries

    def clear(self) -> int:
        """Drop every entry and return how many were removed"""
        removed = len(self._entries)
        self._entries.clear()
        logger.info("Activity log cleared", removed=removed)
        return removed

    def counts_by_status(self) -> Dict[int, int]:
        return dict(Counter(entry.status for entry in self._entries))
