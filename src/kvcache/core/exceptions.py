"""
Core Exception Hierarchy for kvcache

Cache errors carry an error code, recovery suggestions and context about the
driver that raised them. Only driver construction and configuration raise;
operations on a constructed driver degrade to misses and failed writes.
"""

import sys
import traceback
import time
import uuid
from enum import Enum
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field


class ErrorCode(Enum):
    """Standard error codes for different error categories."""

    # Remote store connection errors (1000-1999)
    CONNECTION_FAILED = 1001
    CONNECTION_TIMEOUT = 1002
    CONNECTION_AUTH_FAILED = 1003

    # Session errors (2000-2999)
    SESSION_START_FAILED = 2001
    SESSION_INVALID = 2002

    # Configuration errors (3000-3999)
    CONFIG_INVALID_FORMAT = 3001
    CONFIG_INVALID_VALUE = 3003
    CONFIG_FILE_NOT_FOUND = 3004
    CONFIG_UNSUPPORTED_DRIVER = 3005
    CONFIG_SCHEMA_VALIDATION = 3006

    # File system errors (6000-6999)
    FS_DIRECTORY_CREATE_FAILED = 6001
    FS_PERMISSION_DENIED = 6002

    # Generic/unknown errors (9000-9999)
    UNKNOWN_ERROR = 9000


@dataclass
class ErrorContext:
    """Contextual information about an error occurrence."""

    operation: str = ""
    driver: Optional[str] = None
    key: Optional[str] = None
    path: Optional[str] = None
    endpoint: Optional[str] = None
    correlation_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    system_info: Dict[str, Any] = field(default_factory=dict)
    user_context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RecoverySuggestion:
    """Structured recovery suggestion for error resolution."""

    action: str  # Brief action description
    description: str  # Detailed explanation
    command: Optional[str] = None  # CLI command to resolve
    priority: int = 1  # Priority order (1=highest)


class CacheError(Exception):
    """
    Base exception for all kvcache errors.

    Raised when a cache driver cannot be resolved or constructed. Carries an
    error code, recovery suggestions and context for debugging.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[RecoverySuggestion]] = None
    ):
        """
        Initialize cache error.

        Args:
            message: Human-readable error description
            error_code: Standardized error code
            context: Contextual information about the error
            cause: Original exception that caused this error
            suggestions: List of recovery suggestions
        """
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []
        self.stack_trace = traceback.format_exc() if cause else None

        if not self.context.correlation_id:
            self.context.correlation_id = str(uuid.uuid4())[:8]

        if not self.context.system_info:
            self.context.system_info = {
                'platform': sys.platform,
                'python_version': sys.version.split()[0],
            }

    def add_suggestion(self, suggestion: RecoverySuggestion) -> None:
        """Add a recovery suggestion to the error."""
        self.suggestions.append(suggestion)
        self.suggestions.sort(key=lambda s: s.priority)

    def get_user_message(self) -> str:
        """Get user-friendly error message with suggestions."""
        lines = [f"Error: {self.message}"]

        if self.error_code != ErrorCode.UNKNOWN_ERROR:
            lines.append(f"Error Code: {self.error_code.value}")

        if self.context.correlation_id:
            lines.append(f"Correlation ID: {self.context.correlation_id}")

        if self.suggestions:
            lines.append("\nSuggested solutions:")
            for i, suggestion in enumerate(self.suggestions[:3], 1):
                lines.append(f"  {i}. {suggestion.action}")
                lines.append(f"     {suggestion.description}")
                if suggestion.command:
                    lines.append(f"     Command: {suggestion.command}")

        return "\n".join(lines)


class ConfigurationError(CacheError):
    """Exception for invalid configuration or an unsupported driver name."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIG_INVALID_VALUE,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext(operation="configure")
        if config_key:
            context.user_context['config_key'] = config_key
            context.user_context['config_value'] = config_value

        kwargs['context'] = context
        kwargs['error_code'] = error_code

        super().__init__(message, **kwargs)

        if error_code == ErrorCode.CONFIG_UNSUPPORTED_DRIVER:
            self.add_suggestion(RecoverySuggestion(
                action="Use a supported driver",
                description="Set 'driver' to one of: array, memory, file, session, redis.",
                priority=1
            ))
        elif error_code == ErrorCode.CONFIG_FILE_NOT_FOUND:
            self.add_suggestion(RecoverySuggestion(
                action="Check the configuration path",
                description="Pass an existing YAML or JSON file with --config.",
                command="kvcache --config kvcache.yaml maint info",
                priority=1
            ))


class CacheDirectoryError(CacheError):
    """Exception raised when the file driver's root directory is unusable."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.FS_DIRECTORY_CREATE_FAILED,
        path: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext(operation="init", driver="file")
        if path:
            context.path = path

        kwargs['context'] = context
        kwargs['error_code'] = error_code

        super().__init__(message, **kwargs)

        self.add_suggestion(RecoverySuggestion(
            action="Check directory permissions",
            description="Make sure the cache path exists or can be created and is writable.",
            priority=1
        ))


class CacheConnectionError(CacheError):
    """Exception raised when the remote key-value store cannot be reached."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONNECTION_FAILED,
        endpoint: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext(operation="connect", driver="redis")
        if endpoint:
            context.endpoint = endpoint

        kwargs['context'] = context
        kwargs['error_code'] = error_code

        super().__init__(message, **kwargs)

        if error_code == ErrorCode.CONNECTION_AUTH_FAILED:
            self.add_suggestion(RecoverySuggestion(
                action="Check credentials",
                description="Verify the configured Redis password and database number.",
                priority=1
            ))
        else:
            self.add_suggestion(RecoverySuggestion(
                action="Check the server",
                description="Verify the Redis host and port are reachable and the server is running.",
                priority=1
            ))
            self.add_suggestion(RecoverySuggestion(
                action="Fall back to a local driver",
                description="Use the file or memory driver while the server is unavailable.",
                command="kvcache --driver file maint info",
                priority=2
            ))


class SessionError(CacheError):
    """Exception raised when no session can be attached to the session driver."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.SESSION_START_FAILED,
        **kwargs
    ):
        kwargs.setdefault('context', ErrorContext(operation="init", driver="session"))
        kwargs['error_code'] = error_code
        super().__init__(message, **kwargs)


# Convenience constructors
def unsupported_driver_error(name: str) -> ConfigurationError:
    """Create the error raised for an unknown driver name."""
    return ConfigurationError(
        f"Unsupported cache driver: {name}",
        error_code=ErrorCode.CONFIG_UNSUPPORTED_DRIVER,
        config_key='driver',
        config_value=name
    )
