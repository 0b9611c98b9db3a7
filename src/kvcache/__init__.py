"""
kvcache - pluggable key-value cache with TTL expiration.

Quick start:

    from kvcache import CacheManager

    cache = CacheManager({"driver": "file", "ttl": 600})
    cache.remember("report", 60, build_report)
"""

from kvcache.core.cache import (
    ArrayCache,
    CacheDriver,
    CacheManager,
    FileCache,
    RedisCache,
    SessionCache,
    get_cache_manager,
    make,
)
from kvcache.core.config import CacheConfig, ConfigManager
from kvcache.core.exceptions import CacheError, ConfigurationError

__version__ = "0.2.0"

__all__ = [
    'ArrayCache',
    'CacheDriver',
    'CacheManager',
    'FileCache',
    'RedisCache',
    'SessionCache',
    'get_cache_manager',
    'make',
    'CacheConfig',
    'ConfigManager',
    'CacheError',
    'ConfigurationError',
]
