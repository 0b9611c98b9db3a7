"""
Tests for the kvcache exception hierarchy
"""

import pytest

from kvcache.core.exceptions import (
    CacheConnectionError,
    CacheDirectoryError,
    CacheError,
    ConfigurationError,
    ErrorCode,
    ErrorContext,
    RecoverySuggestion,
    SessionError,
    unsupported_driver_error,
)


class TestCacheError:
    """Test base error behaviour."""

    def test_defaults(self):
        error = CacheError("boom")

        assert str(error) == "boom"
        assert error.error_code == ErrorCode.UNKNOWN_ERROR
        assert error.cause is None
        assert error.suggestions == []
        assert len(error.context.correlation_id) == 8
        assert "python_version" in error.context.system_info

    def test_cause_and_stack_trace(self):
        try:
            raise OSError("disk")
        except OSError as e:
            error = CacheError("wrapped", cause=e)

        assert error.cause.args == ("disk",)
        assert "OSError" in error.stack_trace

    def test_suggestions_sorted_by_priority(self):
        error = CacheError("boom")
        error.add_suggestion(RecoverySuggestion("second", "b", priority=2))
        error.add_suggestion(RecoverySuggestion("first", "a", priority=1))

        assert [s.action for s in error.suggestions] == ["first", "second"]

    def test_user_message(self):
        error = CacheError(
            "Cannot reach store",
            error_code=ErrorCode.CONNECTION_FAILED,
            context=ErrorContext(correlation_id="abc12345"),
            suggestions=[RecoverySuggestion("Retry", "Try again later", command="kvcache maint info")],
        )
        message = error.get_user_message()

        assert message.startswith("Error: Cannot reach store")
        assert "Error Code: 1001" in message
        assert "Correlation ID: abc12345" in message
        assert "1. Retry" in message
        assert "Command: kvcache maint info" in message

    def test_unknown_code_omitted_from_message(self):
        assert "Error Code" not in CacheError("boom").get_user_message()


class TestSubclasses:
    """Test specialised errors and their suggestions."""

    @pytest.mark.parametrize("error_class", [
        ConfigurationError, CacheDirectoryError, CacheConnectionError, SessionError,
    ])
    def test_all_derive_from_cache_error(self, error_class):
        assert issubclass(error_class, CacheError)

    def test_configuration_error_context(self):
        error = ConfigurationError("bad ttl", config_key="ttl", config_value=-1)

        assert error.error_code == ErrorCode.CONFIG_INVALID_VALUE
        assert error.context.operation == "configure"
        assert error.context.user_context == {"config_key": "ttl", "config_value": -1}

    def test_unsupported_driver_error(self):
        error = unsupported_driver_error("memcached")

        assert error.error_code == ErrorCode.CONFIG_UNSUPPORTED_DRIVER
        assert error.context.user_context["config_value"] == "memcached"
        assert "array, memory, file, session, redis" in error.suggestions[0].description

    def test_directory_error(self):
        error = CacheDirectoryError("cannot create", path="/nope")

        assert error.error_code == ErrorCode.FS_DIRECTORY_CREATE_FAILED
        assert error.context.path == "/nope"
        assert error.context.driver == "file"
        assert error.suggestions

    def test_connection_error_suggestions(self):
        refused = CacheConnectionError("refused", endpoint="h:1/0")
        auth = CacheConnectionError("denied", error_code=ErrorCode.CONNECTION_AUTH_FAILED)

        assert refused.context.endpoint == "h:1/0"
        assert len(refused.suggestions) == 2
        assert [s.action for s in auth.suggestions] == ["Check credentials"]

    def test_session_error(self):
        error = SessionError("no session")
        assert error.error_code == ErrorCode.SESSION_START_FAILED
        assert error.context.driver == "session"
