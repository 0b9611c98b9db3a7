"""
Session-backed cache driver.

Entries live inside the caller's session under a single namespaced key, so
they vanish with the session. Records use the same ``{"expires", "value"}``
shape as the file driver.
"""

import logging
from typing import Any, Dict, MutableMapping, Optional

from kvcache.core.cache.entry import CacheEntry
from kvcache.core.cache.drivers.base import CacheDriver
from kvcache.core.exceptions import ErrorCode, SessionError
from kvcache.core.session import Session, start_session


logger = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = "_kvcache"


class SessionCache(CacheDriver):
    """
    Cache scoped to a session mapping.

    With an explicit ``session`` every operation uses that mapping. Without
    one, each operation uses the session active in the current context,
    and constructing the driver starts one if none is active.
    """

    name = "session"

    def __init__(
        self,
        prefix: str = "",
        ttl: Optional[int] = None,
        session: Optional[Session] = None,
        session_key: str = DEFAULT_SESSION_KEY,
        metrics_enabled: bool = True
    ):
        super().__init__(prefix=prefix, ttl=ttl, metrics_enabled=metrics_enabled)

        if session is not None and not isinstance(session, MutableMapping):
            raise SessionError(
                f"Session must be a mutable mapping, got {type(session).__name__}",
                error_code=ErrorCode.SESSION_INVALID
            )

        self._explicit_session = session
        self._session_key = session_key or DEFAULT_SESSION_KEY

        # Starts the ambient session when none is active yet
        self.session

    @property
    def session(self) -> Session:
        if self._explicit_session is not None:
            return self._explicit_session
        return start_session()

    @property
    def session_key(self) -> str:
        return self._session_key

    def _bucket(self, create: bool = False) -> Optional[MutableMapping]:
        session = self.session
        bucket = session.get(self._session_key)
        if isinstance(bucket, MutableMapping):
            return bucket
        if not create:
            return None

        bucket = {}
        session[self._session_key] = bucket
        return bucket

    def _mark_modified(self) -> None:
        # Framework sessions only notice top-level assignments
        session = self.session
        if hasattr(session, "modified"):
            session.modified = True

    def _load(self, key: str) -> Optional[CacheEntry]:
        bucket = self._bucket()
        if bucket is None:
            return None

        prefixed_key = self.prefixed(key)
        if prefixed_key not in bucket:
            return None

        entry = CacheEntry.from_record(bucket[prefixed_key])
        if entry is None:
            logger.warning(f"Discarding malformed session cache record: {key}")
        if entry is None or entry.is_expired():
            del bucket[prefixed_key]
            self._mark_modified()
            return None

        return entry

    def _store(self, key: str, entry: CacheEntry) -> bool:
        bucket = self._bucket(create=True)
        bucket[self.prefixed(key)] = entry.to_record()
        self._mark_modified()
        return True

    def delete(self, key: str) -> bool:
        bucket = self._bucket()
        if bucket is not None and bucket.pop(self.prefixed(key), None) is not None:
            self._mark_modified()

        self._count("deletes")
        return True

    def clear(self) -> bool:
        if not self._prefix:
            self.session.pop(self._session_key, None)
            self._mark_modified()
            return True

        bucket = self._bucket()
        if bucket is not None:
            for key in [k for k in bucket if k.startswith(self._prefix)]:
                del bucket[key]
            self._mark_modified()
        return True

    def clean_expired(self) -> int:
        bucket = self._bucket()
        if not bucket:
            return 0

        expired = []
        for key, record in bucket.items():
            entry = CacheEntry.from_record(record)
            if entry is None or entry.is_expired():
                expired.append(key)

        for key in expired:
            del bucket[key]

        if expired:
            self._mark_modified()
            logger.debug(f"Cleaned up {len(expired)} expired session entries")
        return len(expired)

    def info(self) -> Dict[str, Any]:
        info = super().info()
        bucket = self._bucket()
        info["session_key"] = self._session_key
        info["entries"] = len(bucket) if bucket else 0
        return info
