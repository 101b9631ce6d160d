"""
Rotation controller: owns the active-key cursor and the skip-search
"""

from typing import Any, Dict, Optional

from .errors import PoolExhausted
from .key_pool import KeyPool, is_cooling_down, is_eligible, mask_key
from ..models.data_classes import Credential
from ..utils.logging import setup_logging

logger = setup_logging()


class RotationController:
    """Selects the active credential and rotates away from failing ones.

    Every mutation here is synchronous, so under asyncio it cannot be
    interleaved with another task's mutation.
    """

    def __init__(self, pool: KeyPool):
        self.pool = pool
        self.rotations = 0
        self._cursor = 0

    @property
    def cursor(self) -> Optional[int]:
        """Index of the active credential, or None for an empty pool"""
        if len(self.pool) == 0:
            return None
        return self._cursor

    def active(self) -> Credential:
        if len(self.pool) == 0:
            raise PoolExhausted("No API keys configured")
        return self.pool[self._cursor]

    def advance(self, manual: bool = False) -> Optional[int]:
        """Move the cursor forward to the next eligible credential.

        Scans circularly from cursor+1 through at most N+1 positions. If no
        eligible credential turns up the cursor stays on the last position
        scanned; callers bound their own retries by attempt count.
        """
        total = len(self.pool)
        if total > 0:
            now = self.pool.clock()
            position = self._cursor
            for _ in range(total + 1):
                position = (position + 1) % total
                if is_eligible(self.pool[position], now):
                    break
            self._cursor = position

        self.rotations += 1

        if manual:
            logger.info("Manual rotate", active_index=self._display_index(), total_keys=total)

        return self.cursor

    def mark_dead(self, credential: Credential):
        self.pool.mark_dead(credential)
        logger.warning("Key marked dead", key=mask_key(credential.value),
                       key_index=self._index_of(credential))

    def mark_rate_limited(self, credential: Credential, duration_ms: int):
        credential.rate_limit_count += 1
        self.pool.mark_cooldown(credential, duration_ms)
        logger.warning("Key rate limited", key=mask_key(credential.value),
                       key_index=self._index_of(credential), cooldown_ms=duration_ms)

    def add(self, value: str) -> bool:
        return self.pool.add(value)

    def remove(self, index: int) -> Credential:
        """Remove a credential while keeping the cursor on the same active key"""
        credential = self.pool.remove(index)

        if index < self._cursor:
            self._cursor -= 1
        if self._cursor >= len(self.pool):
            self._cursor = 0
        return credential

    def clear_transient_flags(self) -> Dict[str, int]:
        return self.pool.clear_transient_flags()

    def status(self) -> Dict[str, Any]:
        now = self.pool.clock()
        credentials = self.pool.list()
        dead = sum(1 for c in credentials if c.dead)
        cooling = sum(1 for c in credentials if is_cooling_down(c, now))
        healthy = sum(1 for c in credentials if is_eligible(c, now))

        return {
            "total_keys": len(credentials),
            "active_index": self._display_index(),
            "active_key": mask_key(self.active().value) if credentials else None,
            "rotations": self.rotations,
            "dead_keys": dead,
            "rate_limited_keys": cooling,
            "healthy_keys": healthy
        }

    def _display_index(self) -> int:
        cursor = self.cursor
        return 0 if cursor is None else cursor + 1

    def _index_of(self, credential: Credential) -> Optional[int]:
        index = self.pool.find(credential.value)
        return None if index is None else index + 1
