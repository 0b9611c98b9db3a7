"""
Tests for FileCache

Covers the on-disk layout, the L1 tier, encoding selection, corruption
self-healing, prefix isolation on a shared root and maintenance helpers.
"""

import hashlib
import json
import pickle
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest
from filelock import Timeout

from kvcache.core.cache.drivers import FileCache
from kvcache.core.exceptions import CacheDirectoryError, ErrorCode
from kvcache.core.monitoring import get_metrics_collector


def disk_path(root: Path, prefixed_key: str) -> Path:
    digest = hashlib.md5(prefixed_key.encode("utf-8", "surrogatepass")).hexdigest()
    return root / digest[:2] / f"{digest}.cache"


class TestLayout:
    """Test directory creation and file placement."""

    def test_creates_root(self, tmp_path):
        root = tmp_path / "nested" / "cache"
        FileCache(path=root)
        assert root.is_dir()

    def test_file_is_sharded_by_digest(self, cache_dir):
        cache = FileCache(path=cache_dir, prefix="app:")
        cache.set("user:1", {"name": "Alice"})

        path = disk_path(cache_dir, "app:user:1")
        assert path.is_file()
        assert path.parent.name == path.stem[:2]

    def test_root_that_is_a_file_is_rejected(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(CacheDirectoryError) as exc_info:
            FileCache(path=blocker)
        assert exc_info.value.context.path == str(blocker)

    def test_unwritable_root_is_rejected(self, cache_dir):
        cache_dir.mkdir(parents=True)
        with patch("kvcache.core.cache.drivers.file.os.access", return_value=False):
            with pytest.raises(CacheDirectoryError) as exc_info:
                FileCache(path=cache_dir)
        assert exc_info.value.error_code == ErrorCode.FS_PERMISSION_DENIED

    def test_key_with_lone_surrogate(self, file_cache, cache_dir):
        key = "bad\udcff"

        assert file_cache.set(key, 1) is True
        assert disk_path(cache_dir, key).is_file()
        assert file_cache.has(key) is True
        assert FileCache(path=cache_dir).get(key) == 1

        assert file_cache.delete(key) is True
        assert file_cache.has(key) is False
        assert not disk_path(cache_dir, key).exists()


class TestEncoding:
    """Test record format on disk."""

    def test_json_like_value_is_stored_as_json(self, file_cache, cache_dir, clock):
        file_cache.set("user:1", {"name": "Alice"}, ttl=600)

        record = json.loads(disk_path(cache_dir, "user:1").read_text(encoding="utf-8"))
        assert record == {"expires": clock.now + 600, "value": {"name": "Alice"}, "key": "user:1"}

    def test_other_values_are_pickled(self, file_cache, cache_dir):
        when = datetime(2024, 1, 2, 3, 4, 5)
        file_cache.set("when", when)

        record = pickle.loads(disk_path(cache_dir, "when").read_bytes())
        assert record["value"] == when
        assert record["expires"] is None

    def test_pickled_value_round_trips_across_instances(self, cache_dir):
        FileCache(path=cache_dir).set("t", (1, 2, 3))
        assert FileCache(path=cache_dir).get("t") == (1, 2, 3)

    def test_nested_json_like_tree_round_trips_across_instances(self, file_cache, cache_dir):
        tree = {"a": [1, 2.5, None, {"b": True}], "c": {"d": [], "e": "é"}, "f": -0.25}
        file_cache.set("tree", tree)

        record = json.loads(disk_path(cache_dir, "tree").read_text(encoding="utf-8"))
        assert record["value"] == tree
        assert FileCache(path=cache_dir).get("tree") == tree

    def test_nested_non_json_tree_round_trips_across_instances(self, file_cache, cache_dir):
        tree = {
            "when": datetime(2024, 1, 2, 3, 4, 5),
            "pair": (1, 2),
            "inner": [{"price": Decimal("1.50"), "tags": {"x", "y"}}],
            7: None,
        }
        file_cache.set("tree", tree)

        record = pickle.loads(disk_path(cache_dir, "tree").read_bytes())
        assert record["value"] == tree
        assert FileCache(path=cache_dir).get("tree") == tree

    def test_value_with_lone_surrogate_is_pickled(self, file_cache, cache_dir):
        value = {"name": "bad\udcff"}

        assert file_cache.set("k", value) is True
        record = pickle.loads(disk_path(cache_dir, "k").read_bytes())
        assert record["value"] == value
        assert FileCache(path=cache_dir).get("k") == value

    def test_unpicklable_value_fails_cleanly(self, file_cache):
        assert file_cache.set("lock", lambda: None) is False
        assert file_cache.get("lock") is None
        assert file_cache.stats.errors == 1


class TestPersistence:
    """Test L2 behaviour across instances."""

    def test_value_survives_new_instance(self, cache_dir):
        FileCache(path=cache_dir).set("k", [1, 2, 3], ttl=60)
        assert FileCache(path=cache_dir).get("k") == [1, 2, 3]

    def test_expired_file_is_deleted_on_read(self, cache_dir, clock):
        FileCache(path=cache_dir).set("k", "v", ttl=5)
        path = disk_path(cache_dir, "k")

        clock.advance(6)
        assert FileCache(path=cache_dir).get("k") is None
        assert not path.exists()

    @pytest.mark.parametrize("payload", [
        b"\x00\x01 definitely not a record",
        b'{"value": "no expiry field"}',
        b'["a", "list"]',
        b'{"expires": "soon", "value": 1}',
    ])
    def test_corrupt_file_is_deleted_and_missed(self, cache_dir, payload):
        path = disk_path(cache_dir, "k")
        path.parent.mkdir(parents=True)
        path.write_bytes(payload)

        cache = FileCache(path=cache_dir)
        assert cache.get("k", "default") == "default"
        assert not path.exists()

    def test_delete_removes_file(self, file_cache, cache_dir):
        file_cache.set("k", "v")
        file_cache.delete("k")
        assert not disk_path(cache_dir, "k").exists()

    def test_no_temp_files_left_behind(self, file_cache, cache_dir):
        for i in range(5):
            file_cache.set(f"k{i}", i)
        assert list(cache_dir.rglob("*.tmp")) == []


class TestMemoryTier:
    """Test the in-process L1 map."""

    def test_hit_served_from_memory(self, file_cache, cache_dir):
        file_cache.set("k", "v")
        disk_path(cache_dir, "k").unlink()

        assert file_cache.get("k") == "v"

    def test_disk_hit_is_promoted(self, cache_dir):
        FileCache(path=cache_dir).set("k", "v")
        cache = FileCache(path=cache_dir)

        assert cache.get("k") == "v"
        disk_path(cache_dir, "k").unlink()
        assert cache.get("k") == "v"

    def test_stored_value_is_not_shared_with_caller(self, file_cache, cache_dir):
        value = {"name": "Alice", "roles": ["admin"]}
        file_cache.set("user:1", value)

        value["name"] = "Mallory"
        value["roles"].append("root")

        expected = {"name": "Alice", "roles": ["admin"]}
        assert file_cache.get("user:1") == expected
        assert FileCache(path=cache_dir).get("user:1") == expected

    def test_returned_value_is_not_shared_with_memory(self, file_cache, cache_dir):
        file_cache.set("user:1", {"name": "Alice"})
        file_cache.get("user:1")["name"] = "Mallory"
        assert file_cache.get("user:1") == {"name": "Alice"}

        promoted = FileCache(path=cache_dir)
        promoted.get("user:1")["name"] = "Mallory"
        assert promoted.get("user:1") == {"name": "Alice"}

    def test_oldest_entry_evicted_first(self, cache_dir):
        cache = FileCache(path=cache_dir, memory_limit=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert "a" not in cache._memory_cache
        assert list(cache._memory_cache) == ["b", "c"]
        # Evicted entries are still on disk
        assert cache.get("a") == 1

    def test_expired_memory_entry_falls_back_to_disk(self, cache_dir, clock):
        cache = FileCache(path=cache_dir)
        cache.set("k", "old", ttl=5)

        # Another process rewrote the key with a longer TTL
        FileCache(path=cache_dir).set("k", "new", ttl=100)

        clock.advance(6)
        assert cache.get("k") == "new"


class TestPrefixes:
    """Test isolation of prefixed instances sharing a root."""

    def test_prefixes_do_not_collide(self, cache_dir):
        a = FileCache(path=cache_dir, prefix="a:")
        b = FileCache(path=cache_dir, prefix="b:")

        a.set("x", 1)
        b.set("x", 2)
        assert a.get("x") == 1
        assert b.get("x") == 2

    def test_key_under_other_prefix_is_a_miss(self, cache_dir):
        a = FileCache(path=cache_dir, prefix="a:")
        b = FileCache(path=cache_dir, prefix="b:")

        a.set("x", 1)

        assert b.get("x", "default") == "default"
        assert b.has("x") is False
        assert b.stats.writes == 0
        assert list(cache_dir.rglob("*.cache")) == [disk_path(cache_dir, "a:x")]

    def test_prefixed_clear_leaves_other_prefix(self, cache_dir):
        a = FileCache(path=cache_dir, prefix="a:")
        b = FileCache(path=cache_dir, prefix="b:")
        a.set("x", 1)
        b.set("x", 2)
        b.set("when", datetime(2024, 1, 1))

        assert a.clear() is True
        assert a.get("x") is None

        fresh_b = FileCache(path=cache_dir, prefix="b:")
        assert fresh_b.get("x") == 2
        assert fresh_b.get("when") == datetime(2024, 1, 1)

    def test_unprefixed_clear_removes_everything(self, cache_dir):
        a = FileCache(path=cache_dir, prefix="a:")
        everything = FileCache(path=cache_dir)
        a.set("x", 1)
        everything.set("y", 2)

        assert everything.clear() is True
        assert list(cache_dir.rglob("*.cache")) == []
        assert cache_dir.is_dir()
        assert FileCache(path=cache_dir, prefix="a:").get("x") is None


class TestFailures:
    """Test degraded operation when the disk misbehaves."""

    def test_lock_timeout_fails_write(self, file_cache):
        with patch("kvcache.core.cache.drivers.file.FileLock") as mock_lock:
            mock_lock.return_value.__enter__.side_effect = Timeout("shard.lock")
            assert file_cache.set("k", "v") is False

        assert file_cache.stats.errors == 1
        assert file_cache.get("k") is None

    def test_os_error_fails_write(self, file_cache):
        with patch("kvcache.core.cache.drivers.file.os.replace", side_effect=OSError("disk full")):
            assert file_cache.set("k", "v") is False

        assert list(file_cache.root.rglob("*.tmp")) == []

    def test_unreadable_file_is_a_miss(self, cache_dir):
        FileCache(path=cache_dir).set("k", "v")
        cache = FileCache(path=cache_dir)

        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            assert cache.get("k", "fallback") == "fallback"
        assert cache.stats.errors == 1


class TestMaintenance:
    """Test clean_expired and info."""

    def test_clean_expired_removes_only_expired_files(self, cache_dir, clock):
        cache = FileCache(path=cache_dir)
        cache.set("old", 1, ttl=1)
        cache.set("fresh", 2, ttl=100)
        cache.set("forever", 3)

        clock.advance(5)
        assert FileCache(path=cache_dir).clean_expired() == 1
        assert not disk_path(cache_dir, "old").exists()
        assert disk_path(cache_dir, "fresh").exists()

    def test_clean_expired_purges_memory_tier(self, file_cache, clock):
        file_cache.set("old", 1, ttl=1)
        clock.advance(5)

        file_cache.clean_expired()
        assert "old" not in file_cache._memory_cache

    def test_clean_expired_skips_undecodable_files(self, cache_dir):
        path = disk_path(cache_dir, "junk")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"\x00junk")

        assert FileCache(path=cache_dir).clean_expired() == 0
        assert path.exists()

    def test_info(self, cache_dir):
        cache = FileCache(path=cache_dir, memory_limit=10)
        cache.set("a", 1)
        cache.set("b", "two")

        info = cache.info()
        assert info["driver"] == "file"
        assert info["path"] == str(cache_dir)
        assert info["memory_cache"]["current_size"] == 2
        assert info["memory_cache"]["max_size"] == 10
        assert info["disk_cache"]["file_count"] == 2
        assert info["disk_cache"]["total_size_mb"] > 0

    def test_disk_timers_recorded(self, file_cache):
        file_cache.set("k", "v")
        FileCache(path=file_cache.root).get("k")

        metrics = get_metrics_collector()
        assert metrics.get_metric("cache.disk_write").get_summary().count >= 1
        assert metrics.get_metric("cache.disk_read").get_summary().count >= 1
