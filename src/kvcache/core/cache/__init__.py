"""
Core Cache Module

Key-value caching with TTL expiration over pluggable storage drivers:
- In-memory (array / memory)
- File-backed with an in-process L1 tier
- Session-backed
- Redis
"""

from .entry import CacheEntry
from .drivers import ArrayCache, CacheDriver, CacheStats, FileCache, RedisCache, SessionCache
from .manager import CacheManager
from .facade import get_cache_manager, set_cache_manager, reset_cache_manager, make

__all__ = [
    'CacheEntry',
    'CacheDriver',
    'CacheStats',
    'ArrayCache',
    'FileCache',
    'SessionCache',
    'RedisCache',
    'CacheManager',
    'get_cache_manager',
    'set_cache_manager',
    'reset_cache_manager',
    'make',
]
