"""
Tests for Configuration Models

Tests the Pydantic configuration model for validation, defaults,
and serialization.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from kvcache.core.config.models import DEFAULT_CACHE_DIR, CacheConfig


class TestCacheConfig:
    """Test CacheConfig model validation and defaults."""

    def test_default_values(self):
        """Test default configuration values."""
        config = CacheConfig()

        assert config.driver == "file"
        assert config.prefix == ""
        assert config.ttl is None
        assert config.metrics_enabled is True
        assert config.path == DEFAULT_CACHE_DIR
        assert config.memory_limit == 1000
        assert config.lock_timeout == 10.0
        assert config.session_key == "_kvcache"
        assert config.host == "127.0.0.1"
        assert config.port == 6379
        assert config.password is None
        assert config.database == 0
        assert config.timeout == 2.5

    @pytest.mark.parametrize("raw, expected", [
        ("FILE", "file"),
        ("  Redis ", "redis"),
        ("memory", "memory"),
    ])
    def test_driver_is_normalized(self, raw, expected):
        assert CacheConfig(driver=raw).driver == expected

    def test_empty_driver_rejected(self):
        with pytest.raises(ValidationError):
            CacheConfig(driver="   ")

    def test_path_expands_user(self):
        config = CacheConfig(path="~/kv")
        assert config.path == Path("~/kv").expanduser()
        assert "~" not in str(config.path)

    def test_empty_password_is_none(self):
        assert CacheConfig(password="").password is None
        assert CacheConfig(password="secret").password == "secret"

    def test_zero_ttl_allowed(self):
        assert CacheConfig(ttl=0).ttl == 0

    @pytest.mark.parametrize("field, value", [
        ("ttl", -1),
        ("memory_limit", 0),
        ("lock_timeout", 0),
        ("port", 0),
        ("port", 65536),
        ("database", -1),
        ("timeout", 0),
        ("session_key", ""),
    ])
    def test_out_of_range_rejected(self, field, value):
        with pytest.raises(ValidationError):
            CacheConfig(**{field: value})

    def test_assignment_is_validated(self):
        config = CacheConfig()
        with pytest.raises(ValidationError):
            config.ttl = -10

    def test_extra_keys_are_kept_for_custom_drivers(self):
        config = CacheConfig(driver="custom", endpoint="tcp://x", pool=4)

        assert config.endpoint == "tcp://x"
        assert config.model_dump()["pool"] == 4

    def test_json_dump(self):
        data = CacheConfig(ttl=60).model_dump(mode="json")
        assert data["ttl"] == 60
        assert isinstance(data["path"], str)
