"""
Redis cache driver.

Expiry is delegated to the server (SET ... EX). Integers are stored as
plain decimal strings so INCRBY/DECRBY operate on them natively; every
other value is pickled.
"""

import contextlib
import logging
import pickle
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

import redis
from redis.exceptions import AuthenticationError, RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from kvcache.core.cache.entry import CacheEntry
from kvcache.core.cache.drivers.base import CacheDriver
from kvcache.core.cache.serializers import GENERAL, DecodeError
from kvcache.core.exceptions import CacheConnectionError, ErrorCode


logger = logging.getLogger(__name__)

_INTEGER_PAYLOAD = re.compile(rb"-?\d+")
_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")

CLEAR_BATCH_SIZE = 500


def escape_glob(text: str) -> str:
    """Escape Redis glob metacharacters so ``text`` matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class RedisCache(CacheDriver):
    """Cache backed by a Redis database."""

    name = "redis"

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        password: Optional[str] = None,
        database: int = 0,
        timeout: float = 2.5,
        prefix: str = "",
        ttl: Optional[int] = None,
        client: Optional[redis.Redis] = None,
        metrics_enabled: bool = True
    ):
        """
        Connect to Redis.

        Args:
            host: Server host
            port: Server port
            password: Optional AUTH password
            database: Database number
            timeout: Connect and socket timeout in seconds
            client: Pre-built client to use instead of connecting

        Raises:
            CacheConnectionError: If the server does not answer PING
        """
        super().__init__(prefix=prefix, ttl=ttl, metrics_enabled=metrics_enabled)

        self.endpoint = f"{host}:{port}/{database}"
        self._owns_client = client is None
        self._closed = False
        self._client = client if client is not None else redis.Redis(
            host=host,
            port=port,
            password=password,
            db=database,
            socket_timeout=timeout,
            socket_connect_timeout=timeout
        )

        try:
            self._client.ping()
        except AuthenticationError as e:
            raise CacheConnectionError(
                f"Redis authentication failed for {self.endpoint}",
                error_code=ErrorCode.CONNECTION_AUTH_FAILED,
                endpoint=self.endpoint,
                cause=e
            ) from e
        except RedisTimeoutError as e:
            raise CacheConnectionError(
                f"Timed out connecting to Redis at {self.endpoint}",
                error_code=ErrorCode.CONNECTION_TIMEOUT,
                endpoint=self.endpoint,
                cause=e
            ) from e
        except RedisError as e:
            raise CacheConnectionError(
                f"Failed to connect to Redis at {self.endpoint}: {e}",
                endpoint=self.endpoint,
                cause=e
            ) from e

        logger.info(f"Redis cache connected: {self.endpoint}")

    @property
    def client(self) -> redis.Redis:
        return self._client

    # Encoding

    @staticmethod
    def _encode(value: Any) -> bytes:
        if type(value) is int:
            return str(value).encode('ascii')
        return GENERAL.encode(value)

    @staticmethod
    def _decode(payload: Any) -> Any:
        if isinstance(payload, str):
            payload = payload.encode('utf-8')
        if _INTEGER_PAYLOAD.fullmatch(payload):
            return int(payload)
        return GENERAL.decode(payload)

    # Storage primitives

    def _load(self, key: str) -> Optional[CacheEntry]:
        prefixed_key = self.prefixed(key)
        try:
            payload = self._client.get(prefixed_key)
        except RedisError as e:
            self._degraded("get", e)
            return None

        if payload is None:
            return None

        try:
            value = self._decode(payload)
        except DecodeError:
            logger.warning(f"Discarding undecodable Redis value: {key}")
            with contextlib.suppress(RedisError):
                self._client.delete(prefixed_key)
            return None

        # The server tracks expiry; loaded entries carry none of their own
        return CacheEntry(value)

    def _store(self, key: str, entry: CacheEntry) -> bool:
        prefixed_key = self.prefixed(key)

        try:
            payload = self._encode(entry.value)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            logger.warning(f"Cannot serialize value for cache key {key!r}: {e}")
            return False

        try:
            if entry.expires_at is None:
                self._client.set(prefixed_key, payload)
                return True

            remaining = entry.seconds_left()
            if remaining <= 0:
                # Already expired on arrival
                self._client.delete(prefixed_key)
            else:
                self._client.set(prefixed_key, payload, ex=remaining)
            return True
        except RedisError as e:
            logger.warning(f"Redis set failed on {self.endpoint}: {e}")
            return False

    def has(self, key: str) -> bool:
        try:
            return bool(self._client.exists(self.prefixed(key)))
        except RedisError as e:
            self._degraded("exists", e)
            return False

    def delete(self, key: str) -> bool:
        try:
            self._client.delete(self.prefixed(key))
        except RedisError as e:
            self._degraded("delete", e)
            return False

        self._count("deletes")
        return True

    def clear(self) -> bool:
        """
        FLUSHDB when unprefixed, otherwise SCAN for the prefix and DEL in batches.

        The prefixed sweep is neither atomic nor cheap on large keyspaces.
        """
        try:
            if not self._prefix:
                self._client.flushdb()
                logger.info(f"Redis database flushed: {self.endpoint}")
                return True

            removed = 0
            batch: List[Any] = []
            for found in self._client.scan_iter(match=f"{escape_glob(self._prefix)}*", count=CLEAR_BATCH_SIZE):
                batch.append(found)
                if len(batch) >= CLEAR_BATCH_SIZE:
                    removed += self._client.delete(*batch)
                    batch = []
            if batch:
                removed += self._client.delete(*batch)
        except RedisError as e:
            self._degraded("clear", e)
            return False

        logger.info(f"Redis cache cleared {removed} keys with prefix {self._prefix!r}")
        return True

    # Counters

    def increment(self, key: str, by: int = 1) -> int:
        return self._adjust(key, by, self._client.incrby)

    def decrement(self, key: str, by: int = 1) -> int:
        return self._adjust(key, -by, lambda name, amount: self._client.decrby(name, -amount))

    def _adjust(self, key: str, delta: int, command: Callable[[str, int], Any]) -> int:
        """Run a native counter command; fresh counters get the default TTL."""
        prefixed_key = self.prefixed(key)
        try:
            is_new = self.default_ttl is not None and not self._client.exists(prefixed_key)
            new_value = int(command(prefixed_key, delta))
            if is_new:
                self._client.expire(prefixed_key, self.default_ttl)
        except ResponseError:
            return self._rewrite_counter(key, delta)
        except RedisError as e:
            self._degraded("increment", e)
            return 0

        self._count("writes")
        return new_value

    def _rewrite_counter(self, key: str, delta: int) -> int:
        """Replace a non-integer value with a counter, keeping its remaining TTL."""
        prefixed_key = self.prefixed(key)
        entry = self._load(key)
        new_value = (self._as_int(entry.value) if entry else 0) + delta

        try:
            remaining = self._client.ttl(prefixed_key)
            expires = remaining if isinstance(remaining, int) and remaining > 0 else None
            self._client.set(prefixed_key, self._encode(new_value), ex=expires)
        except RedisError as e:
            self._degraded("increment", e)
            return 0

        self._count("writes")
        return new_value

    # Batch helpers

    def get_many(self, keys: Iterable[str], default: Any = None) -> Dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}

        try:
            payloads = self._client.mget([self.prefixed(key) for key in keys])
        except RedisError as e:
            self._degraded("mget", e)
            return {key: default for key in keys}

        results = {}
        for key, payload in zip(keys, payloads):
            value = default
            if payload is not None:
                try:
                    value = self._decode(payload)
                except DecodeError:
                    logger.warning(f"Discarding undecodable Redis value: {key}")
            self._count("hits" if value is not default else "misses")
            results[key] = value
        return results

    def info(self) -> Dict[str, Any]:
        info = super().info()
        info["endpoint"] = self.endpoint
        try:
            info["keys"] = self._client.dbsize()
        except RedisError as e:
            info["keys"] = f"unavailable ({e})"
        return info

    def close(self) -> None:
        """
        Release the connection pool when this driver created the client.

        The client object is kept, so later operations reconnect or degrade
        like any other Redis failure.
        """
        if self._owns_client and not self._closed:
            self._client.close()
            logger.debug(f"Redis connection closed: {self.endpoint}")
        self._closed = True

    def __del__(self):
        with contextlib.suppress(Exception):
            self.close()

    def _degraded(self, operation: str, error: Exception) -> None:
        logger.warning(f"Redis {operation} failed on {self.endpoint}: {error}")
        self._count("errors")
