"""
Core kvcache Package

Contains the cache drivers and manager, configuration, session context,
metrics and error handling.
"""

from kvcache.core.exceptions import (
    CacheError,
    ConfigurationError,
    CacheDirectoryError,
    CacheConnectionError,
    SessionError,
    ErrorCode,
    ErrorContext,
    RecoverySuggestion
)

__all__ = [
    'CacheError',
    'ConfigurationError',
    'CacheDirectoryError',
    'CacheConnectionError',
    'SessionError',
    'ErrorCode',
    'ErrorContext',
    'RecoverySuggestion'
]
