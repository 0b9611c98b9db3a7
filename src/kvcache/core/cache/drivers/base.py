"""
Cache Driver Contract

Every backend implements two storage primitives (``_load`` and ``_store``)
plus ``delete`` and ``clear``; the rest of the contract (get, set, has,
remember, increment, decrement and the batch helpers) is shared here so
TTL and remember semantics are identical across media.

Operations on a constructed driver never raise for storage failures:
reads degrade to the default value and writes return False. ``remember``
and ``increment`` are read-then-write sequences with no cross-process or
cross-thread locking; concurrent callers may each run the producer or
lose an increment.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, TypeVar

from kvcache.core.cache.entry import CacheEntry
from kvcache.core.monitoring.metrics import get_metrics_collector, MetricsCollector


T = TypeVar('T')
logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Per-driver operation counters."""
    hits: int = 0
    misses: int = 0
    writes: int = 0
    deletes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['hit_rate'] = self.hit_rate
        return data


class CacheDriver(ABC):
    """Base class for every cache backend."""

    name: str = ""

    def __init__(
        self,
        prefix: str = "",
        ttl: Optional[int] = None,
        metrics_enabled: bool = True
    ):
        """
        Args:
            prefix: Namespace prepended to every key before it reaches the medium
            ttl: Default seconds-to-live for set/remember calls without a TTL
            metrics_enabled: Record counters in the global metrics collector
        """
        self._prefix = prefix or ""
        self.default_ttl = ttl
        self.stats = CacheStats()

        self._metrics: Optional[MetricsCollector] = get_metrics_collector() if metrics_enabled else None
        if self._metrics:
            self._setup_metrics()

    def _setup_metrics(self) -> None:
        self._metrics.counter("cache.hits", "Cache hits")
        self._metrics.counter("cache.misses", "Cache misses")
        self._metrics.counter("cache.writes", "Successful cache writes")
        self._metrics.counter("cache.deletes", "Cache deletes")
        self._metrics.counter("cache.errors", "Degraded cache operations")

    @property
    def prefix(self) -> str:
        return self._prefix

    def prefixed(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def resolve_ttl(self, ttl: Optional[int]) -> Optional[int]:
        """Explicit TTL, else the driver default, else None (never expires)."""
        return ttl if ttl is not None else self.default_ttl

    # Storage primitives

    @abstractmethod
    def _load(self, key: str) -> Optional[CacheEntry]:
        """
        Return the live entry for ``key`` or None.

        Implementations delete expired or malformed entries they come across
        and swallow medium errors (returning None).
        """

    @abstractmethod
    def _store(self, key: str, entry: CacheEntry) -> bool:
        """Persist ``entry`` under ``key``; False on medium failure."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Missing keys count as deleted."""

    @abstractmethod
    def clear(self) -> bool:
        """Remove every key under this driver's prefix (everything if no prefix)."""

    # Shared contract

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get value from cache.

        Args:
            key: Cache key
            default: Value returned when the key is absent or expired

        Returns:
            Cached value or default
        """
        entry = self._load(key)
        if entry is None:
            self._count("misses")
            logger.debug(f"Cache miss ({self.name}): {key}")
            return default

        self._count("hits")
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (driver default when None)

        Returns:
            True if the write reached the medium
        """
        stored = self._store(key, CacheEntry.create(value, self.resolve_ttl(ttl)))
        self._count("writes" if stored else "errors")
        return stored

    def has(self, key: str) -> bool:
        """True when a live, non-None value is stored under ``key``."""
        return self.get(key) is not None

    def remember(self, key: str, ttl: Optional[int], producer: Callable[[], T]) -> T:
        """
        Return the cached value, or compute it with ``producer`` and store it.

        ``producer`` runs at most once per call and only on a miss. Exceptions
        raised by ``producer`` propagate and nothing is stored.
        """
        value = self.get(key)
        if value is not None:
            return value

        value = producer()
        self.set(key, value, ttl)
        return value

    def increment(self, key: str, by: int = 1) -> int:
        """
        Add ``by`` to the integer stored under ``key`` and return the result.

        Absent or non-numeric values count as 0. A live key keeps its expiry;
        a new key gets the default TTL.
        """
        entry = self._load(key)
        new_value = (self._as_int(entry.value) if entry else 0) + by

        if entry is None:
            self.set(key, new_value)
        elif self._store(key, CacheEntry(new_value, entry.expires_at)):
            self._count("writes")
        else:
            self._count("errors")

        return new_value

    def decrement(self, key: str, by: int = 1) -> int:
        """Subtract ``by`` from the integer stored under ``key``."""
        return self.increment(key, -by)

    def get_many(self, keys: Iterable[str], default: Any = None) -> Dict[str, Any]:
        """Get several keys at once; missing ones map to ``default``."""
        return {key: self.get(key, default) for key in keys}

    def set_many(self, values: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        """Set several keys; True only if every write succeeded."""
        success = True
        for key, value in values.items():
            if not self.set(key, value, ttl):
                success = False
        return success

    def delete_many(self, keys: Iterable[str]) -> bool:
        """Delete several keys; True only if every delete succeeded."""
        success = True
        for key in keys:
            if not self.delete(key):
                success = False
        return success

    def clean_expired(self) -> int:
        """
        Remove expired entries and return how many were removed.

        Media that expire keys themselves have nothing to sweep.
        """
        return 0

    def info(self) -> Dict[str, Any]:
        """Describe the driver and its counters for diagnostics."""
        return {
            "driver": self.name,
            "prefix": self._prefix,
            "default_ttl": self.default_ttl,
            "stats": self.stats.to_dict(),
        }

    def close(self) -> None:
        """Release resources held by the driver."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(prefix={self._prefix!r}, ttl={self.default_ttl!r})"

    # Helpers

    def _count(self, stat: str) -> None:
        setattr(self.stats, stat, getattr(self.stats, stat) + 1)
        if self._metrics:
            self._metrics.increment(f"cache.{stat}")

    @staticmethod
    def _as_int(value: Any) -> int:
        """Coerce a stored value to int the way counters expect (junk → 0)."""
        if isinstance(value, (str, bytes)):
            try:
                return int(value)
            except ValueError:
                pass
            try:
                value = float(value)
            except ValueError:
                return 0
        if isinstance(value, (bool, int, float)):
            try:
                return int(value)
            except (ValueError, OverflowError):
                return 0
        return 0
