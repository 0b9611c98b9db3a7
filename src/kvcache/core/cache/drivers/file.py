"""
File-backed cache driver.

Two tiers: a bounded in-process L1 map in front of one file per key on
disk (L2). Files live at ``<root>/<hh>/<md5>.cache`` where ``md5`` is the
hex digest of the prefixed key and ``hh`` its first two characters, which
keeps per-directory file counts bounded.

Each file holds a record ``{"expires", "value", "key"}`` encoded as JSON
when the value is JSON-like, or pickled otherwise. Writes hold an
exclusive lock on the shard directory and replace the file atomically.
"""

import contextlib
import hashlib
import logging
import os
import pickle
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from cachetools import FIFOCache, LRUCache
from filelock import FileLock, Timeout

from kvcache.core.cache.entry import CacheEntry
from kvcache.core.cache.drivers.base import CacheDriver
from kvcache.core.cache.serializers import GENERAL, DecodeError, decode_payload, serializer_for
from kvcache.core.config.models import DEFAULT_CACHE_DIR
from kvcache.core.exceptions import CacheDirectoryError, ErrorCode


logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".cache"
LOCK_FILENAME = ".lock"


class FileCache(CacheDriver):
    """
    Persistent cache with an in-memory L1 tier.

    The L1 map holds encoded records, so values handed in or out are never
    shared with it. It evicts in insertion order once ``memory_limit``
    entries are held. It is process-local: another process writing the same key is only
    seen here after the L1 entry expires or is evicted.
    """

    name = "file"

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        prefix: str = "",
        ttl: Optional[int] = None,
        memory_limit: int = 1000,
        lock_timeout: float = 10.0,
        metrics_enabled: bool = True
    ):
        """
        Initialize the file cache.

        Args:
            path: Root directory for cache files (created if missing)
            prefix: Key namespace
            ttl: Default seconds-to-live
            memory_limit: Capacity of the L1 map
            lock_timeout: Seconds to wait for a shard write lock

        Raises:
            CacheDirectoryError: If the root cannot be created or is not writable
        """
        super().__init__(prefix=prefix, ttl=ttl, metrics_enabled=metrics_enabled)

        self._root = Path(path).expanduser() if path else DEFAULT_CACHE_DIR
        self._lock_timeout = lock_timeout
        self._memory_cache: FIFOCache = FIFOCache(maxsize=memory_limit)
        self._path_cache: LRUCache = LRUCache(maxsize=max(memory_limit * 4, 1024))

        self._setup_cache_dir()

    @property
    def root(self) -> Path:
        return self._root

    def _setup_cache_dir(self) -> None:
        """Create the root directory and make sure it is writable."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheDirectoryError(
                f"Failed to create cache directory: {self._root}",
                path=str(self._root),
                cause=e
            ) from e

        if not self._root.is_dir() or not os.access(self._root, os.W_OK | os.X_OK):
            raise CacheDirectoryError(
                f"Cache directory is not writable: {self._root}",
                error_code=ErrorCode.FS_PERMISSION_DENIED,
                path=str(self._root)
            )

        logger.debug(f"File cache directory: {self._root}")

    def _get_disk_path(self, key: str) -> Path:
        """Shard path for a key, memoized per instance."""
        path = self._path_cache.get(key)
        if path is None:
            digest = hashlib.md5(self.prefixed(key).encode('utf-8', 'surrogatepass')).hexdigest()
            path = self._root / digest[:2] / f"{digest}{CACHE_SUFFIX}"
            self._path_cache[key] = path
        return path

    def _timed(self, name: str):
        if self._metrics:
            return self._metrics.time_operation(name)
        return contextlib.nullcontext()

    # Storage primitives

    def _load(self, key: str) -> Optional[CacheEntry]:
        cached = self._memory_cache.get(key)
        if cached is not None:
            entry = self._decode_entry(cached)
            if entry is not None and entry.is_live():
                return entry
            self._memory_cache.pop(key, None)

        disk_path = self._get_disk_path(key)
        try:
            with self._timed("cache.disk_read"):
                payload = disk_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Failed to read from disk cache: {e}")
            self._count("errors")
            return None

        entry = self._decode_entry(payload)
        if entry is None:
            logger.warning(f"Discarding corrupt cache file: {disk_path}")
            self._remove_file(disk_path)
            return None

        if entry.is_expired():
            self._remove_file(disk_path)
            return None

        self._memory_cache[key] = payload
        return entry

    def _store(self, key: str, entry: CacheEntry) -> bool:
        record = entry.to_record()
        record['key'] = self.prefixed(key)

        try:
            payload = self._encode_record(entry.value, record)
        except (pickle.PicklingError, TypeError, AttributeError, ValueError, RecursionError) as e:
            logger.warning(f"Cannot serialize value for cache key {key!r}: {e}")
            self._memory_cache.pop(key, None)
            return False

        # L1 first so reads in this process skip the disk round-trip
        self._memory_cache[key] = payload

        disk_path = self._get_disk_path(key)
        try:
            with self._timed("cache.disk_write"):
                self._write_file(disk_path, payload)
        except (OSError, Timeout) as e:
            logger.warning(f"Failed to write to disk cache: {e}")
            self._memory_cache.pop(key, None)
            return False

        return True

    def _write_file(self, disk_path: Path, payload: bytes) -> None:
        """Write ``payload`` under the shard lock via an atomic rename."""
        shard_dir = disk_path.parent
        shard_dir.mkdir(parents=True, exist_ok=True)

        with FileLock(str(shard_dir / LOCK_FILENAME), timeout=self._lock_timeout):
            fd, tmp_name = tempfile.mkstemp(dir=shard_dir, prefix=disk_path.stem, suffix=".tmp")
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(payload)
                os.replace(tmp_name, disk_path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise

    def delete(self, key: str) -> bool:
        self._memory_cache.pop(key, None)
        if not self._remove_file(self._get_disk_path(key)):
            return False

        self._count("deletes")
        return True

    def clear(self) -> bool:
        """
        Clear the cache.

        Without a prefix the whole root directory is removed and recreated.
        With a prefix only files whose record key carries that prefix go.
        """
        self._memory_cache.clear()
        self._path_cache.clear()

        try:
            if not self._prefix:
                if self._root.exists():
                    shutil.rmtree(self._root)
                self._root.mkdir(parents=True, exist_ok=True)
                removed = None
            else:
                removed = 0
                for cache_file in self._iter_cache_files():
                    record = self._read_record(cache_file)
                    if isinstance(record, Mapping) and str(record.get('key', '')).startswith(self._prefix):
                        if self._remove_file(cache_file):
                            removed += 1
        except OSError as e:
            logger.warning(f"Failed to clear disk cache {self._root}: {e}")
            self._count("errors")
            return False

        if removed is None:
            logger.info(f"File cache cleared: {self._root}")
        else:
            logger.info(f"File cache cleared {removed} entries with prefix {self._prefix!r}")
        return True

    def clean_expired(self) -> int:
        """
        Delete every expired cache file under the root.

        Files that cannot be decoded are left alone (they may hold pickled
        types this process cannot import); reads of them self-heal instead.
        Meant for periodic external invocation, e.g. from cron.
        """
        cleaned_count = 0

        for cache_file in self._iter_cache_files():
            record = self._read_record(cache_file)
            entry = CacheEntry.from_record(record) if record is not None else None
            if entry is not None and entry.is_expired() and self._remove_file(cache_file):
                cleaned_count += 1

        stale = []
        for key, payload in self._memory_cache.items():
            entry = self._decode_entry(payload)
            if entry is None or entry.is_expired():
                stale.append(key)
        for key in stale:
            self._memory_cache.pop(key, None)

        if cleaned_count > 0:
            logger.info(f"Cleaned up {cleaned_count} expired cache files")

        return cleaned_count

    def info(self) -> Dict[str, Any]:
        info = super().info()
        info["path"] = str(self._root)
        info["memory_cache"] = {
            "current_size": len(self._memory_cache),
            "max_size": self._memory_cache.maxsize,
            "utilization": len(self._memory_cache) / self._memory_cache.maxsize
        }

        try:
            disk_files = list(self._iter_cache_files())
            total_size = sum(f.stat().st_size for f in disk_files if f.exists())
            info["disk_cache"] = {
                "file_count": len(disk_files),
                "total_size_mb": total_size / 1024 / 1024
            }
        except OSError:
            info["disk_cache"] = {"error": "Unable to calculate disk cache size"}

        return info

    # Helpers

    def _iter_cache_files(self) -> Iterator[Path]:
        if not self._root.exists():
            return iter(())
        return iter(list(self._root.rglob(f"*{CACHE_SUFFIX}")))

    def _read_record(self, cache_file: Path) -> Any:
        """Decoded record for a file, or None when it is unreadable."""
        try:
            return decode_payload(cache_file.read_bytes())
        except (OSError, DecodeError):
            return None

    @staticmethod
    def _encode_record(value: Any, record: Dict[str, Any]) -> bytes:
        serializer = serializer_for(value)
        try:
            return serializer.encode(record)
        except UnicodeEncodeError:
            if serializer is GENERAL:
                raise
            # Lone surrogates have no strict UTF-8 form; pickle keeps them
            return GENERAL.encode(record)

    @staticmethod
    def _decode_entry(payload: bytes) -> Optional[CacheEntry]:
        try:
            return CacheEntry.from_record(decode_payload(payload))
        except DecodeError:
            return None

    def _remove_file(self, disk_path: Path) -> bool:
        try:
            disk_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove cache file {disk_path}: {e}")
            self._count("errors")
            return False
        return True
