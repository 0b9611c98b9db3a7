"""
Cache Entry

The value + expiration pair stored by every driver, and its persisted
record form ``{"expires": int | None, "value": payload}``.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


def current_time() -> int:
    """Current UTC epoch second used for every expiry decision."""
    return int(time.time())


def expiration_for(ttl: Optional[int]) -> Optional[int]:
    """Absolute expiry for a TTL in seconds; None means never expires."""
    if ttl is None:
        return None
    return current_time() + int(ttl)


@dataclass
class CacheEntry:
    """Container for cached data with its absolute expiry."""

    value: Any
    expires_at: Optional[int] = None

    @classmethod
    def create(cls, value: Any, ttl: Optional[int] = None) -> "CacheEntry":
        """Build an entry that expires ``ttl`` seconds from now."""
        return cls(value=value, expires_at=expiration_for(ttl))

    def is_live(self, now: Optional[int] = None) -> bool:
        """An entry is live until the second after its expiry."""
        if self.expires_at is None:
            return True
        return self.expires_at >= (current_time() if now is None else now)

    def is_expired(self, now: Optional[int] = None) -> bool:
        return not self.is_live(now)

    def seconds_left(self, now: Optional[int] = None) -> Optional[int]:
        """Seconds until expiry (zero or negative once due); None if it never expires."""
        if self.expires_at is None:
            return None
        return self.expires_at - (current_time() if now is None else now)

    def to_record(self) -> Dict[str, Any]:
        return {'expires': self.expires_at, 'value': self.value}

    @classmethod
    def from_record(cls, record: Any) -> Optional["CacheEntry"]:
        """
        Rebuild an entry from its persisted mapping.

        Returns None for anything malformed: not a mapping, a missing field,
        or an expiry that is neither None nor an integer.
        """
        if not isinstance(record, Mapping):
            return None
        if 'expires' not in record or 'value' not in record:
            return None

        expires = record['expires']
        if expires is not None and (isinstance(expires, bool) or not isinstance(expires, int)):
            return None

        return cls(value=record['value'], expires_at=expires)
