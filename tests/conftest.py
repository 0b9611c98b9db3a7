"""
Shared Test Configuration and Fixtures

Frozen clock, driver and manager fixtures, a mock Redis client and
isolation of the process-wide state (default manager, metrics, session).
"""

from unittest.mock import MagicMock

import pytest

from kvcache.core.cache import entry as cache_entry
from kvcache.core.cache import facade
from kvcache.core.cache.drivers import ArrayCache, FileCache, RedisCache, SessionCache
from kvcache.core.cache.manager import CacheManager
from kvcache.core.monitoring.metrics import get_metrics_collector
from kvcache.core.session import end_session


class FrozenClock:
    """Controllable replacement for the cache's epoch-second clock."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


# Clock
@pytest.fixture
def clock(monkeypatch):
    """Freeze cache time; advance it with ``clock.advance(seconds)``."""
    frozen = FrozenClock()
    monkeypatch.setattr(cache_entry, "current_time", frozen)
    return frozen


# Isolation
@pytest.fixture(autouse=True)
def isolate_global_state():
    """Reset the default manager, metrics and ambient session around every test."""
    facade.reset_cache_manager()
    get_metrics_collector().clear_all()
    end_session()
    yield
    facade.reset_cache_manager()
    end_session()


# Drivers
@pytest.fixture
def cache_dir(tmp_path):
    path = tmp_path / "cache"
    return path


@pytest.fixture
def array_cache():
    return ArrayCache()


@pytest.fixture
def file_cache(cache_dir):
    return FileCache(path=cache_dir)


@pytest.fixture
def session_store():
    """A plain dict standing in for a web framework session."""
    return {}


@pytest.fixture
def session_cache(session_store):
    return SessionCache(session=session_store)


@pytest.fixture
def redis_client():
    """MagicMock shaped like redis.Redis with a responsive PING."""
    client = MagicMock(name="redis_client")
    client.ping.return_value = True
    client.get.return_value = None
    client.exists.return_value = 0
    client.delete.return_value = 1
    return client


@pytest.fixture
def redis_cache(redis_client):
    return RedisCache(client=redis_client)


@pytest.fixture(params=["array", "file", "session"])
def any_cache(request, cache_dir, session_store):
    """Each local driver, for contract tests shared by all of them."""
    if request.param == "array":
        return ArrayCache()
    if request.param == "file":
        return FileCache(path=cache_dir)
    return SessionCache(session=session_store)


# Managers
@pytest.fixture
def manager(cache_dir):
    manager = CacheManager({"driver": "file", "path": str(cache_dir)})
    yield manager
    manager.close()


@pytest.fixture
def memory_manager():
    manager = CacheManager({"driver": "memory"})
    yield manager
    manager.close()


# Pytest Configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "cli: marks tests that drive the command-line interface"
    )
