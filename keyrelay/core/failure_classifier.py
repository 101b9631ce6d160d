"""
Upstream status classification and key-handling strategy
"""

import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from ..models.enums import AttemptOutcome

# Randomized cooldown used when a 429 carries no usable Retry-After
DEFAULT_COOLDOWN_FLOOR_MS = 250
DEFAULT_COOLDOWN_JITTER_MS = 500


@dataclass
class FailureStrategy:
    """How the forwarding loop treats one attempt outcome"""

    terminal: bool          # Stop the loop and return this response?
    mark_dead: bool         # Permanently disable the key?
    cool_down: bool         # Put the key into a timed cooldown?
    rotate: bool            # Advance the cursor before the next attempt?
    description: str


class FailureClassifier:
    """Maps upstream results to attempt outcomes and handling strategies"""

    STRATEGIES = {
        AttemptOutcome.SUCCESS: FailureStrategy(
            terminal=True,
            mark_dead=False,
            cool_down=False,
            rotate=False,
            description="Any status outside 401/403/429, relayed verbatim"
        ),

        AttemptOutcome.RATE_LIMITED: FailureStrategy(
            terminal=False,
            mark_dead=False,
            cool_down=True,
            rotate=True,
            description="Rate limit exceeded, key cools down"
        ),

        AttemptOutcome.UNAUTHORIZED: FailureStrategy(
            terminal=False,
            mark_dead=True,
            cool_down=False,
            rotate=True,
            description="Key rejected, requires operator reset"
        ),

        AttemptOutcome.TRANSPORT_ERROR: FailureStrategy(
            terminal=False,
            mark_dead=False,
            cool_down=False,
            rotate=True,
            description="Network failure or timeout, try the next key"
        ),

        AttemptOutcome.SKIPPED: FailureStrategy(
            terminal=False,
            mark_dead=False,
            cool_down=False,
            rotate=True,
            description="Active key ineligible, no upstream call made"
        ),
    }

    @classmethod
    def classify_status(cls, status_code: int) -> AttemptOutcome:
        if status_code == 429:
            return AttemptOutcome.RATE_LIMITED
        if status_code in (401, 403):
            return AttemptOutcome.UNAUTHORIZED
        return AttemptOutcome.SUCCESS

    @classmethod
    def get_strategy(cls, outcome: AttemptOutcome) -> FailureStrategy:
        return cls.STRATEGIES[outcome]

    @classmethod
    def parse_retry_after(cls, value: Optional[str],
                          now: Optional[datetime] = None) -> Optional[int]:
        """
        Parse a Retry-After header into milliseconds

        Args:
            value: Header value, either delta-seconds or an HTTP-date
            now: Reference instant for HTTP-date values

        Returns:
            Milliseconds to wait, or None when absent or unparseable
        """
        if not value:
            return None

        value = value.strip()
        try:
            seconds = float(value)
        except ValueError:
            try:
                when = parsedate_to_datetime(value)
            except (TypeError, ValueError, IndexError):
                return None
            if when is None:
                return None
            if when.tzinfo is None:
                when = when.replace(tzinfo=timezone.utc)
            now = now or datetime.now(timezone.utc)
            seconds = (when - now).total_seconds()

        if not math.isfinite(seconds) or seconds <= 0:
            return None
        return int(seconds * 1000)

    @classmethod
    def cooldown_ms(cls, retry_after: Optional[str],
                    now: Optional[datetime] = None) -> int:
        """Cooldown for a rate-limited key: Retry-After if usable, else jittered default"""
        parsed = cls.parse_retry_after(retry_after, now)
        if parsed is not None:
            return parsed
        return DEFAULT_COOLDOWN_FLOOR_MS + random.randint(0, DEFAULT_COOLDOWN_JITTER_MS)
