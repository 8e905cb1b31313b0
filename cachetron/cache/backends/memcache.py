"""
Cachetron - Memcached Cache Backend

Asynchronous Memcached cache implementation built on aiomcache.

Memcached has no network key enumeration, so keys() returns the keys this
process wrote since the adapter was constructed (a local set). Keys written
by other processes, or before this adapter existed, are invisible to
keys() and therefore to migration.

Failure policy:
- get/has_key fail soft (None/False)
- set/delete/clear raise TransportError
- stats requests are bounded by a hard timeout (default 5 seconds)

Memcached reads an exptime above 30 days as an absolute Unix timestamp.
Predicted TTLs have no upper bound, so longer TTLs are sent as now + ttl.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse

import aiomcache

from ...errors import MetricsCollectionError, TransportError
from ..interface import CacheInterface, TTLSource
from ..metrics import MetricsSnapshot, RollingStats

logger = logging.getLogger(__name__)

DEFAULT_MEMCACHE_PORT = 11211

# Largest exptime memcached treats as relative seconds
MAX_RELATIVE_EXPTIME = 60 * 60 * 24 * 30


def parse_server_address(url: str) -> tuple[str, int]:
    """Split memcache://host:port or host:port into (host, port)."""
    parsed = urlparse(url if "://" in url else f"memcache://{url}")
    host = parsed.hostname or "localhost"
    port = parsed.port or DEFAULT_MEMCACHE_PORT
    return host, port


def to_exptime(ttl: int | None) -> int:
    """Convert a TTL in seconds to a memcached exptime (0 = no expiry)."""
    if not ttl:
        return 0
    if ttl > MAX_RELATIVE_EXPTIME:
        return int(time.time()) + ttl
    return ttl


def _decode(value: Any) -> Any:
    return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value


def parse_memcache_stats(raw: Any) -> dict[str, Any]:
    """
    Normalize a stats payload into a flat {stat_name: value} mapping.

    Accepted shapes:
    - {"get_hits": ..., ...}
    - {"host:port": {"get_hits": ..., ...}}
    - [{"server": ..., "stats": {...}}] or [{"server": ..., "get_hits": ..., ...}]

    Raises:
        MetricsCollectionError: If no stats mapping can be found
    """
    stats: Any = None

    if isinstance(raw, list | tuple):
        first = raw[0] if raw else None
        if isinstance(first, Mapping) and isinstance(first.get("stats"), Mapping):
            stats = first["stats"]
        elif isinstance(first, Mapping):
            stats = {k: v for k, v in first.items() if k != "server"}
    elif isinstance(raw, Mapping) and raw:
        decoded = {_decode(k): v for k, v in raw.items()}
        first_value = next(iter(decoded.values()))
        if all(isinstance(v, Mapping) for v in decoded.values()) and isinstance(first_value, Mapping):
            stats = first_value
        else:
            stats = decoded

    if not isinstance(stats, Mapping) or not stats:
        raise MetricsCollectionError(
            "Invalid stats format from Memcached",
            details={"received": repr(raw)[:200]},
        )

    return {_decode(k): _decode(v) for k, v in stats.items()}


class MemcacheCacheBackend(CacheInterface):
    """
    Memcached cache backend with JSON serialization and TTL.

    Notes:
    - Values are stored as UTF-8 JSON strings.
    - ttl None/0 -> exptime 0 (no expiry) unless adaptive TTL supplies one.
    - clear() issues flush_all: every key on the server is invalidated.
    """

    backend_name = "memcache"

    def __init__(
        self,
        server: str,
        namespace: str | None = None,
        auto_ttl: bool = False,
        ttl_source: TTLSource | None = None,
        stats_timeout: float = 5.0,
        pool_size: int = 2,
    ) -> None:
        """
        Initialize Memcached cache backend.

        Args:
            server: memcache://host:port or host:port
            namespace: Optional prefix for all keys
            auto_ttl: Use predicted TTLs for writes without an explicit ttl
            ttl_source: Callable returning the latest TTL feature vector
            stats_timeout: Hard timeout for the stats request in seconds
            pool_size: Connection pool size
        """
        if not server:
            raise ValueError("server is required")

        super().__init__(auto_ttl=auto_ttl, ttl_source=ttl_source, namespace=namespace)
        self.host, self.port = parse_server_address(server)
        self.stats_timeout = stats_timeout
        self._stats = RollingStats()
        self._key_set: set[str] = set()
        self._closed = False

        # aiomcache connects lazily from its pool
        self._client = aiomcache.Client(self.host, self.port, pool_size=pool_size)

    def _encode_key(self, key: str) -> bytes:
        return self._make_key(key).encode("utf-8")

    # ------------ Core Interface ------------

    async def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        try:
            data = await self._client.get(self._encode_key(key))
            logger.debug("Got key '%s' from Memcached (hit=%s)", key, data is not None)
            return self._from_json(data)
        except Exception as e:
            logger.error(
                f"Error getting key '{key}' from Memcached: {e}",
                extra={"key": key, "backend": self.backend_name, "error": str(e)},
                exc_info=True,
            )
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """
        Store a value with optional TTL.

        Raises:
            TransportError: If serialization or the backend write fails
        """
        exptime = to_exptime(self.resolve_ttl(ttl))
        try:
            payload = self._to_json(value).encode("utf-8")
            stored = await self._client.set(self._encode_key(key), payload, exptime=exptime)
        except Exception as e:
            logger.error(
                f"Error setting key '{key}' in Memcached: {e}",
                extra={"key": key, "backend": self.backend_name, "ttl": exptime, "error": str(e)},
            )
            raise TransportError(self.backend_name, "set", {"key": key, "error": str(e)}) from e

        if not stored:
            raise TransportError(self.backend_name, "set", {"key": key, "error": "value not stored"})

        self._key_set.add(key)
        logger.debug("Set key '%s' in Memcached with ttl %s", key, exptime)

    async def delete(self, key: str) -> None:
        """
        Delete a single key.

        Raises:
            TransportError: If the backend delete fails
        """
        try:
            await self._client.delete(self._encode_key(key))
        except Exception as e:
            logger.error(
                f"Error deleting key '{key}' from Memcached: {e}",
                extra={"key": key, "backend": self.backend_name, "error": str(e)},
            )
            raise TransportError(self.backend_name, "delete", {"key": key, "error": str(e)}) from e

        self._key_set.discard(key)
        logger.debug("Deleted key '%s' from Memcached", key)

    async def has_key(self, key: str) -> bool:
        """Check if a key exists (Memcached has no EXISTS; this is a get)."""
        try:
            return await self._client.get(self._encode_key(key)) is not None
        except Exception as e:
            logger.error(
                f"Error checking key '{key}' in Memcached: {e}",
                extra={"key": key, "backend": self.backend_name, "error": str(e)},
                exc_info=True,
            )
            return False

    async def clear(self) -> None:
        """
        Flush every key on the server.

        Raises:
            TransportError: If flush_all fails
        """
        try:
            await self._client.flush_all()
        except Exception as e:
            logger.error(
                f"Error clearing Memcached: {e}",
                extra={"backend": self.backend_name, "error": str(e)},
            )
            raise TransportError(self.backend_name, "clear", {"error": str(e)}) from e

        self._key_set.clear()
        logger.info("Cleared Memcached", extra={"backend": self.backend_name})

    async def keys(self) -> list[str]:
        """Keys written by this process since construction."""
        return sorted(self._key_set)

    async def disconnect(self) -> None:
        """Close the connection pool and forget tracked keys."""
        if self._closed:
            return
        self._closed = True
        self._key_set.clear()
        try:
            await self._client.close()
            logger.info(
                "Disconnected Memcached cache backend",
                extra={"host": self.host, "port": self.port},
            )
        except Exception as e:
            logger.error(
                f"Error closing Memcached client: {e}",
                extra={"host": self.host, "port": self.port, "error": str(e)},
                exc_info=True,
            )

    # ------------ Metrics ------------

    async def get_cache_metrics(self) -> MetricsSnapshot:
        """Sample server stats into a MetricsSnapshot."""
        try:
            raw = await asyncio.wait_for(self._client.stats(), timeout=self.stats_timeout)
        except TimeoutError as e:
            raise MetricsCollectionError(
                f"Stats request timed out after {self.stats_timeout} seconds",
                details={"backend": self.backend_name, "timeout": self.stats_timeout},
            ) from e
        except Exception as e:
            raise MetricsCollectionError(
                f"Error fetching Memcached stats: {e}",
                details={"backend": self.backend_name, "error": str(e)},
            ) from e

        stats = parse_memcache_stats(raw)
        snapshot = self._stats.sample(
            hits=stats.get("get_hits"),
            misses=stats.get("get_misses"),
            evictions=stats.get("evictions"),
            used_bytes=stats.get("bytes"),
            key_count=stats.get("curr_items"),
        )
        logger.info(
            "Memcached metrics collected - Keys: %s, Size: %sMB",
            snapshot.key_count,
            snapshot.cache_size,
            extra={"backend": self.backend_name},
        )
        return snapshot
