"""
Cache drivers.

One backend per storage medium, all implementing ``CacheDriver``.
"""

from kvcache.core.cache.drivers.base import CacheDriver, CacheStats
from kvcache.core.cache.drivers.array import ArrayCache
from kvcache.core.cache.drivers.file import FileCache
from kvcache.core.cache.drivers.session import SessionCache
from kvcache.core.cache.drivers.redis import RedisCache

__all__ = [
    'CacheDriver',
    'CacheStats',
    'ArrayCache',
    'FileCache',
    'SessionCache',
    'RedisCache',
]
