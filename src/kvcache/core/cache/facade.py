"""
Cache Facade

Process-wide default ``CacheManager`` plus module-level shortcuts so
application code can call ``cache.get(...)`` without threading a manager
through every layer.
"""

import functools
import logging
import threading
from typing import Any, Callable, Mapping, Optional, TypeVar, Union

from kvcache.core.cache.drivers import CacheDriver
from kvcache.core.cache.manager import CacheManager
from kvcache.core.config.models import CacheConfig


T = TypeVar('T')
logger = logging.getLogger(__name__)

ConfigLike = Union[CacheConfig, Mapping[str, Any]]

_default_manager: Optional[CacheManager] = None
_manager_lock = threading.Lock()


def get_cache_manager(config: Optional[ConfigLike] = None) -> CacheManager:
    """
    Get the default cache manager, creating it on first call.

    ``config`` is only used when the manager does not exist yet; later
    calls return the existing instance unchanged.
    """
    global _default_manager

    if _default_manager is None:
        with _manager_lock:
            if _default_manager is None:
                _default_manager = CacheManager(config)
                logger.debug("Default cache manager created")
    return _default_manager


def set_cache_manager(manager: CacheManager) -> None:
    """Replace the default cache manager."""
    global _default_manager

    with _manager_lock:
        _default_manager = manager


def reset_cache_manager() -> None:
    """Close and drop the default manager; the next access builds a fresh one."""
    global _default_manager

    with _manager_lock:
        manager, _default_manager = _default_manager, None
    if manager is not None:
        manager.close()


def make(config: Optional[ConfigLike] = None) -> CacheManager:
    """Build an independent manager that does not touch the default."""
    return CacheManager(config)


def driver(name: Optional[str] = None) -> CacheDriver:
    return get_cache_manager().driver(name)


def get(key: str, default: Any = None) -> Any:
    return get_cache_manager().get(key, default)


def set(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    return get_cache_manager().set(key, value, ttl)


def has(key: str) -> bool:
    return get_cache_manager().has(key)


def delete(key: str) -> bool:
    return get_cache_manager().delete(key)


def clear() -> bool:
    return get_cache_manager().clear()


def remember(key: str, ttl: Optional[int], producer: Callable[[], T]) -> T:
    return get_cache_manager().remember(key, ttl, producer)


def increment(key: str, by: int = 1) -> int:
    return get_cache_manager().increment(key, by)


def decrement(key: str, by: int = 1) -> int:
    return get_cache_manager().decrement(key, by)


def cached(key: Optional[str] = None, ttl: Optional[int] = None):
    """Convenience decorator for caching function results."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        # Resolve the manager per call so set_cache_manager() takes effect
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return get_cache_manager().cached(key, ttl)(func)(*args, **kwargs)

        return wrapper
    return decorator
