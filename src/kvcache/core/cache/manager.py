"""
Cache Manager

Resolves driver names to configured driver instances and forwards cache
operations to the active driver. One instance is kept per driver name
for the lifetime of the manager.
"""

import functools
import hashlib
import logging
import threading
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, TypeVar, Union

from pydantic import ValidationError

from kvcache.core.cache.drivers import ArrayCache, CacheDriver, FileCache, RedisCache, SessionCache
from kvcache.core.config.models import CacheConfig
from kvcache.core.exceptions import ConfigurationError, ErrorCode, unsupported_driver_error


T = TypeVar('T')
logger = logging.getLogger(__name__)

DriverFactory = Callable[[CacheConfig], CacheDriver]

DRIVER_ALIASES = {
    "memory": "array",
}


def _create_array_driver(config: CacheConfig) -> CacheDriver:
    return ArrayCache(
        prefix=config.prefix,
        ttl=config.ttl,
        metrics_enabled=config.metrics_enabled
    )


def _create_file_driver(config: CacheConfig) -> CacheDriver:
    return FileCache(
        path=config.path,
        prefix=config.prefix,
        ttl=config.ttl,
        memory_limit=config.memory_limit,
        lock_timeout=config.lock_timeout,
        metrics_enabled=config.metrics_enabled
    )


def _create_session_driver(config: CacheConfig) -> CacheDriver:
    return SessionCache(
        prefix=config.prefix,
        ttl=config.ttl,
        session_key=config.session_key,
        metrics_enabled=config.metrics_enabled
    )


def _create_redis_driver(config: CacheConfig) -> CacheDriver:
    return RedisCache(
        host=config.host,
        port=config.port,
        password=config.password,
        database=config.database,
        timeout=config.timeout,
        prefix=config.prefix,
        ttl=config.ttl,
        metrics_enabled=config.metrics_enabled
    )


BUILTIN_DRIVERS: Dict[str, DriverFactory] = {
    "array": _create_array_driver,
    "file": _create_file_driver,
    "session": _create_session_driver,
    "redis": _create_redis_driver,
}


def canonical_driver_name(name: str) -> str:
    """Lowercase a driver name and resolve aliases."""
    name = name.strip().lower()
    return DRIVER_ALIASES.get(name, name)


class CacheManager:
    """
    Entry point for configured cache access.

    Example:
        manager = CacheManager({"driver": "file", "path": "/var/cache/app", "ttl": 600})
        manager.set("user:1", {"name": "Alice"})
        manager.driver("memory").set("scratch", 1)
    """

    def __init__(self, config: Optional[Union[CacheConfig, Mapping[str, Any]]] = None):
        """
        Initialize cache manager.

        Args:
            config: CacheConfig or a plain mapping of configuration keys

        Raises:
            ConfigurationError: If the mapping fails validation
        """
        self._config = self._coerce_config(config)
        self._factories: Dict[str, DriverFactory] = dict(BUILTIN_DRIVERS)
        self._drivers: Dict[str, CacheDriver] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _coerce_config(config: Optional[Union[CacheConfig, Mapping[str, Any]]]) -> CacheConfig:
        if config is None:
            return CacheConfig()
        if isinstance(config, CacheConfig):
            return config

        try:
            return CacheConfig(**dict(config))
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e}",
                error_code=ErrorCode.CONFIG_SCHEMA_VALIDATION,
                cause=e
            ) from e

    @property
    def config(self) -> CacheConfig:
        """The configuration drivers are built from."""
        return self._config

    @property
    def default_driver(self) -> str:
        return canonical_driver_name(self._config.driver)

    def driver(self, name: Optional[str] = None) -> CacheDriver:
        """
        Get a driver instance, constructing and caching it on first use.

        Args:
            name: Driver name or alias (configured default when None)

        Raises:
            ConfigurationError: If no driver is registered under the name
            CacheError: If the driver cannot be constructed
        """
        requested = name if name is not None else self._config.driver
        canonical = canonical_driver_name(requested)

        with self._lock:
            instance = self._drivers.get(canonical)
            if instance is not None:
                return instance

            factory = self._factories.get(canonical)
            if factory is None:
                raise unsupported_driver_error(requested)

            instance = factory(self._config)
            self._drivers[canonical] = instance
            logger.info(f"Cache driver created: {canonical} (prefix={self._config.prefix!r})")
            return instance

    def extend(self, name: str, factory: DriverFactory) -> None:
        """
        Register a custom driver factory.

        The factory receives the manager's CacheConfig (extra keys included)
        and returns a CacheDriver. Registering over an existing name drops
        any cached instance built by the previous factory.
        """
        canonical = canonical_driver_name(name)
        with self._lock:
            self._factories[canonical] = factory
            self._forget(canonical)
        logger.debug(f"Registered cache driver: {canonical}")

    def purge(self, name: Optional[str] = None) -> None:
        """Close and forget a cached driver (the default one when name is None)."""
        canonical = canonical_driver_name(name if name is not None else self._config.driver)
        with self._lock:
            self._forget(canonical)

    def close(self) -> None:
        """Close and forget every cached driver."""
        with self._lock:
            for canonical in list(self._drivers):
                self._forget(canonical)

    def _forget(self, canonical: str) -> None:
        instance = self._drivers.pop(canonical, None)
        if instance is not None:
            instance.close()
            logger.debug(f"Cache driver released: {canonical}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Delegated operations

    def get(self, key: str, default: Any = None) -> Any:
        return self.driver().get(key, default)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return self.driver().set(key, value, ttl)

    def has(self, key: str) -> bool:
        return self.driver().has(key)

    def delete(self, key: str) -> bool:
        return self.driver().delete(key)

    def clear(self) -> bool:
        return self.driver().clear()

    def remember(self, key: str, ttl: Optional[int], producer: Callable[[], T]) -> T:
        return self.driver().remember(key, ttl, producer)

    def increment(self, key: str, by: int = 1) -> int:
        return self.driver().increment(key, by)

    def decrement(self, key: str, by: int = 1) -> int:
        return self.driver().decrement(key, by)

    def get_many(self, keys: Iterable[str], default: Any = None) -> Dict[str, Any]:
        return self.driver().get_many(keys, default)

    def set_many(self, values: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        return self.driver().set_many(values, ttl)

    def delete_many(self, keys: Iterable[str]) -> bool:
        return self.driver().delete_many(keys)

    def clean_expired(self) -> int:
        return self.driver().clean_expired()

    def cached(self, key: Optional[str] = None, ttl: Optional[int] = None):
        """
        Decorator for caching function results.

        Args:
            key: Custom cache key (derived from the function and its arguments if None)
            ttl: Time-to-live for cached result

        Returns:
            Decorated function
        """
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            @functools.wraps(func)
            def wrapper(*args, **kwargs) -> T:
                cache_key = key or self._function_key(func, args, kwargs)
                return self.remember(cache_key, ttl, lambda: func(*args, **kwargs))

            return wrapper
        return decorator

    @staticmethod
    def _function_key(func: Callable, args: tuple, kwargs: Dict[str, Any]) -> str:
        func_name = f"{func.__module__}.{func.__qualname__}"
        args_repr = repr((args, sorted(kwargs.items())))
        return f"{func_name}:{hashlib.md5(args_repr.encode('utf-8')).hexdigest()}"
