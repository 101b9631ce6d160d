"""
Key pool: ordered upstream credentials and their status flags
"""

from datetime import datetime, timezone, timedelta
from typing import Callable, Dict, Iterable, List, Any, Optional

from ..models.data_classes import Credential
from ..utils.logging import setup_logging

logger = setup_logging()

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def mask_key(value: Optional[str]) -> str:
    """Show the first 6 and last 4 characters of a key, never the middle"""
    if value and len(value) > 8:
        return f"{value[:6]}...{value[-4:]}"
    return "sk-****"


def is_cooling_down(credential: Credential, now: datetime) -> bool:
    return credential.cooldown_until is not None and credential.cooldown_until > now


def is_eligible(credential: Credential, now: datetime) -> bool:
    """A credential is selectable when it is alive and not cooling down"""
    return not credential.dead and not is_cooling_down(credential, now)


class KeyPool:
    """In-memory store of credentials; mutated only through the rotation engine and admin commands"""

    def __init__(self, keys: Iterable[str] = (), clock: Clock = utc_now):
        self.clock = clock
        self._credentials: List[Credential] = []
        for key in keys:
            self.add(key)

    def __len__(self) -> int:
        return len(self._credentials)

    def __getitem__(self, index: int) -> Credential:
        return self._credentials[index]

    def list(self) -> List[Credential]:
        """Read-only snapshot of the ordered credentials"""
        return list(self._credentials)

    def find(self, value: str) -> Optional[int]:
        for index, credential in enumerate(self._credentials):
            if credential.value == value:
                return index
        return None

    def add(self, value: str) -> bool:
        """Append a credential unless the same value is already pooled"""
        value = (value or "").strip()
        if not value or self.find(value) is not None:
            return False

        self._credentials.append(Credential(value=value, added_at=self.clock()))
        logger.info("Key added to pool", key=mask_key(value), total_keys=len(self._credentials))
        return True

    def remove(self, index: int) -> Credential:
        if index < 0 or index >= len(self._credentials):
            raise IndexError(f"No key at position {index + 1}")

        credential = self._credentials.pop(index)
        logger.info("Key removed from pool", key=mask_key(credential.value),
                    total_keys=len(self._credentials))
        return credential

    def mark_dead(self, credential: Credential):
        credential.dead = True

    def mark_cooldown(self, credential: Credential, duration_ms: int):
        """Cool a credential down; a longer pending cooldown is kept"""
        until = self.clock() + timedelta(milliseconds=max(0, duration_ms))
        if credential.cooldown_until is None or until > credential.cooldown_until:
            credential.cooldown_until = until

    def record_success(self, credential: Credential):
        credential.use_count += 1

    def clear_transient_flags(self) -> Dict[str, int]:
        """Clear every dead flag and cooldown in the pool"""
        now = self.clock()
        revived = sum(1 for c in self._credentials if c.dead)
        cooled = sum(1 for c in self._credentials if is_cooling_down(c, now))

        for credential in self._credentials:
            credential.dead = False
            credential.cooldown_until = None

        logger.info("Key flags cleared", revived=revived, cooldowns_cleared=cooled)
        return {"revived": revived, "cooldowns_cleared": cooled}

    def snapshot(self, active_index: Optional[int] = None) -> List[Dict[str, Any]]:
        """Masked per-credential status for reporting"""
        now = self.clock()
        rows = []
        for index, credential in enumerate(self._credentials):
            remaining = 0
            if is_cooling_down(credential, now):
                remaining = int((credential.cooldown_until - now).total_seconds() * 1000)
            rows.append({
                "index": index + 1,
                "key": mask_key(credential.value),
                "active": index == active_index,
                "dead": credential.dead,
                "cooling_down": is_cooling_down(credential, now),
                "cooldown_remaining_ms": remaining,
                "use_count": credential.use_count,
                "rate_limit_count": credential.rate_limit_count,
                "added_at": credential.added_at.isoformat()
            })
        return rows
