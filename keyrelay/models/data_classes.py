"""
Data classes for keyrelay application
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .enums import AttemptOutcome


@dataclass
class Credential:
    """One upstream API key and its status flags"""
    value: str
    dead: bool = False
    cooldown_until: Optional[datetime] = None
    use_count: int = 0
    rate_limit_count: int = 0
    added_at: datetime = None

    def __post_init__(self):
        if self.added_at is None:
            self.added_at = datetime.now(timezone.utc)


@dataclass
class UpstreamResponse:
    """Raw upstream reply, kept opaque apart from the headers we act on"""
    status: int
    content_type: str
    body: bytes
    retry_after: Optional[str] = None


@dataclass
class AttemptRecord:
    """One pass through the forwarding loop"""
    attempt: int
    key_index: int
    outcome: AttemptOutcome
    status: Optional[int] = None
    cooldown_ms: Optional[int] = None


@dataclass
class ForwardResult:
    """Terminal result of forwarding one inbound request"""
    status: int
    content_type: str
    body: bytes
    key_index: int = 0
    latency_ms: int = 0
    exhausted: bool = False
    attempts: list = field(default_factory=list)
