"""
Configuration Management Package

Provides the Pydantic-based cache configuration model and loader.
"""

from kvcache.core.config.models import CacheConfig, DEFAULT_CACHE_DIR
from kvcache.core.config.manager import ConfigManager

__all__ = [
    "CacheConfig",
    "DEFAULT_CACHE_DIR",
    "ConfigManager",
]
