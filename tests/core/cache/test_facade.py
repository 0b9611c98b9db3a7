"""
Tests for the Cache Facade

Covers the lazily created default manager, replacing and resetting it,
and the module-level shortcuts.
"""

import threading
from unittest.mock import MagicMock

from kvcache.core.cache import facade
from kvcache.core.cache.drivers import ArrayCache
from kvcache.core.cache.manager import CacheManager


class TestDefaultManager:
    """Test the process-wide manager lifecycle."""

    def test_created_lazily_once(self):
        first = facade.get_cache_manager({"driver": "array"})
        assert facade.get_cache_manager() is first
        assert first.config.driver == "array"

    def test_config_ignored_after_creation(self):
        first = facade.get_cache_manager({"driver": "array"})
        assert facade.get_cache_manager({"driver": "session"}) is first
        assert first.config.driver == "array"

    def test_concurrent_first_access_builds_one_manager(self):
        seen = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            seen.append(facade.get_cache_manager({"driver": "array"}))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({id(manager) for manager in seen}) == 1

    def test_set_cache_manager_replaces(self):
        replacement = CacheManager({"driver": "array"})
        facade.set_cache_manager(replacement)
        assert facade.get_cache_manager() is replacement

    def test_reset_closes_and_drops(self):
        manager = facade.get_cache_manager({"driver": "array"})
        manager.close = MagicMock()

        facade.reset_cache_manager()
        manager.close.assert_called_once()
        assert facade.get_cache_manager({"driver": "array"}) is not manager

    def test_make_builds_independent_manager(self):
        default = facade.get_cache_manager({"driver": "array"})
        other = facade.make({"driver": "array"})

        assert other is not default
        other.set("k", 1)
        assert default.get("k") is None


class TestShortcuts:
    """Test module-level functions."""

    def test_shortcuts_use_default_manager(self):
        facade.set_cache_manager(CacheManager({"driver": "memory"}))

        assert facade.set("user:1", {"name": "Alice"}, 600) is True
        assert facade.get("user:1") == {"name": "Alice"}
        assert facade.has("user:1") is True
        assert facade.delete("user:1") is True
        assert facade.get("user:1", "missing") == "missing"

        assert facade.increment("n") == 1
        assert facade.decrement("n", 3) == -2
        assert facade.remember("r", 60, lambda: "value") == "value"
        assert facade.clear() is True
        assert isinstance(facade.driver(), ArrayCache)

    def test_cached_follows_replaced_manager(self):
        calls = []

        @facade.cached(key="answer")
        def answer():
            calls.append(1)
            return 42

        facade.set_cache_manager(CacheManager({"driver": "array"}))
        assert answer() == 42
        assert answer() == 42
        assert len(calls) == 1

        replacement = CacheManager({"driver": "array"})
        facade.set_cache_manager(replacement)
        answer()
        assert len(calls) == 2
        assert replacement.get("answer") == 42
