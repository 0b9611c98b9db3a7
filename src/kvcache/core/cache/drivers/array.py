"""
In-memory cache driver.

Entries live in a plain dict for the lifetime of the driver instance. This
driver defines the reference TTL and remember semantics the other
backends match.
"""

import logging
from typing import Any, Dict, Optional

from kvcache.core.cache.entry import CacheEntry
from kvcache.core.cache.drivers.base import CacheDriver


logger = logging.getLogger(__name__)


class ArrayCache(CacheDriver):
    """Process-local cache backed by a dict keyed by prefixed key."""

    name = "array"

    def __init__(self, prefix: str = "", ttl: Optional[int] = None, metrics_enabled: bool = True):
        super().__init__(prefix=prefix, ttl=ttl, metrics_enabled=metrics_enabled)
        self._storage: Dict[str, CacheEntry] = {}

    def _load(self, key: str) -> Optional[CacheEntry]:
        prefixed_key = self.prefixed(key)
        entry = self._storage.get(prefixed_key)
        if entry is None:
            return None

        if entry.is_expired():
            del self._storage[prefixed_key]
            return None

        return entry

    def _store(self, key: str, entry: CacheEntry) -> bool:
        self._storage[self.prefixed(key)] = entry
        return True

    def delete(self, key: str) -> bool:
        self._storage.pop(self.prefixed(key), None)
        self._count("deletes")
        return True

    def clear(self) -> bool:
        if not self._prefix:
            self._storage.clear()
            return True

        for key in [k for k in self._storage if k.startswith(self._prefix)]:
            del self._storage[key]
        return True

    def clean_expired(self) -> int:
        expired = [k for k, entry in self._storage.items() if entry.is_expired()]
        for key in expired:
            del self._storage[key]

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired in-memory entries")
        return len(expired)

    def info(self) -> Dict[str, Any]:
        info = super().info()
        info["entries"] = len(self._storage)
        return info

    def all(self) -> Dict[str, CacheEntry]:
        """Snapshot of every stored entry, keyed by prefixed key, expired ones included."""
        return dict(self._storage)

    def __len__(self) -> int:
        return len(self._storage)
