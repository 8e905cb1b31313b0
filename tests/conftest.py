"""
Cachetron - Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
"""

import json
import os
import socket
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from cachetron.cache.interface import CacheInterface, TTLSource
from cachetron.cache.metrics import MetricsSnapshot, RollingStats
from cachetron.config import CacheConfiguration, RuntimeSettings

# Set test environment
os.environ["LOG_LEVEL"] = "DEBUG"


def is_redis_available() -> bool:
    """Check if Redis server is available for testing."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("localhost", 6379))
        sock.close()
        return result == 0
    except OSError:
        return False


# Skip marker for Redis tests
redis_available = pytest.mark.skipif(not is_redis_available(), reason="Redis server not available")


class FakeCacheBackend(CacheInterface):
    """Dict-backed adapter used to exercise the manager without a server."""

    backend_name = "fake"

    def __init__(
        self,
        config: CacheConfiguration | None = None,
        ttl_source: TTLSource | None = None,
        auto_ttl: bool = False,
    ) -> None:
        super().__init__(auto_ttl=auto_ttl, ttl_source=ttl_source)
        self.config = config
        self.data: dict[str, Any] = {}
        self.ttls: dict[str, int | None] = {}
        self.extra_keys: list[str] = []
        self.disconnect_calls = 0
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.fail_set_after: int | None = None
        self.fail_keys = False
        self._rolling = RollingStats()

    async def get(self, key: str) -> Any | None:
        if key in self.data:
            self.hits += 1
            return self.data[key]
        self.misses += 1
        return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        if self.fail_set_after is not None and len(self.data) >= self.fail_set_after:
            raise ConnectionError("backend unavailable")
        self.ttls[key] = self.resolve_ttl(ttl)
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)

    async def has_key(self, key: str) -> bool:
        return key in self.data

    async def clear(self) -> None:
        self.data.clear()

    async def keys(self) -> list[str]:
        if self.fail_keys:
            raise ConnectionError("backend unavailable")
        return list(self.data) + self.extra_keys

    async def disconnect(self) -> None:
        self.disconnect_calls += 1

    async def get_cache_metrics(self) -> MetricsSnapshot:
        size = sum(len(json.dumps(v)) for v in self.data.values())
        return self._rolling.sample(self.hits, self.misses, self.evictions, size, len(self.data))


class FakeAdapterFactory:
    """Adapter factory that records every adapter it builds."""

    def __init__(self) -> None:
        self.created: list[FakeCacheBackend] = []

    def __call__(
        self,
        config: CacheConfiguration,
        ttl_source: TTLSource | None,
        settings: RuntimeSettings,
    ) -> FakeCacheBackend:
        adapter = FakeCacheBackend(config=config, ttl_source=ttl_source, auto_ttl=config.auto_ttl)
        self.created.append(adapter)
        return adapter


@pytest.fixture
def test_redis_url() -> str:
    """Get Redis URL for testing (database 15 for isolation)."""
    return os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest.fixture
def fake_factory() -> FakeAdapterFactory:
    return FakeAdapterFactory()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Location of a per-test cachetron.json."""
    return tmp_path / "cachetron.json"


@pytest.fixture
def write_config(config_path: Path) -> Callable[..., Path]:
    """Write cachetron.json with the given fields."""

    def _write(**fields: Any) -> Path:
        config_path.write_text(json.dumps(fields), encoding="utf-8")
        return config_path

    return _write


@pytest.fixture
def test_settings(tmp_path: Path, config_path: Path) -> RuntimeSettings:
    """Runtime settings with short timers and per-test file locations."""
    return RuntimeSettings(
        config_path=str(config_path),
        metrics_path=str(tmp_path / "data" / "metric.json"),
        metrics_interval=0.05,
        debounce_seconds=0.05,
        stats_timeout=0.5,
    )
