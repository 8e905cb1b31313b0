"""
Cachetron - Redis Cache Backend

Asynchronous Redis cache implementation with:
- JSON serialization for values
- Per-key TTL support (EX seconds), adaptive TTL when enabled
- Full keyspace enumeration via SCAN
- Metrics from INFO counters (keyspace_hits, keyspace_misses, evicted_keys, used_memory)

Failure policy:
- get/has_key fail soft (None/False)
- set/delete/clear log and swallow backend errors

Requires: redis>=5.0 with asyncio support

Example:
    cache = RedisCacheBackend(redis_url="redis://localhost:6379/0")
    await cache.set("greeting", {"msg": "hello"}, ttl=60)
    val = await cache.get("greeting")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ...errors import MetricsCollectionError
from ..interface import CacheInterface, TTLSource
from ..metrics import MetricsSnapshot, RollingStats

logger = logging.getLogger(__name__)

try:
    # redis-py asyncio client (v4+)
    from redis.asyncio import Redis
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Redis async client is required but not installed. "
        "Install with: pip install 'redis>=5.0.0' or add 'redis' to your dependencies."
    ) from e


def normalize_redis_url(url: str) -> str:
    """Accept bare host:port by assuming the redis:// scheme."""
    return url if "://" in url else f"redis://{url}"


class RedisCacheBackend(CacheInterface):
    """
    Redis cache backend with JSON serialization and TTL.

    Notes:
    - Values are stored as UTF-8 JSON strings.
    - ttl None/0 -> no expiry (unless adaptive TTL supplies one).
    - clear() issues FLUSHDB: the whole logical database is wiped.
    """

    backend_name = "redis"

    def __init__(
        self,
        redis_url: str,
        namespace: str | None = None,
        auto_ttl: bool = False,
        ttl_source: TTLSource | None = None,
        socket_timeout: float = 5.0,
        stats_timeout: float = 5.0,
        max_connections: int = 10,
    ) -> None:
        """
        Initialize Redis cache backend.

        Args:
            redis_url: Connection URL, e.g., redis://localhost:6379/0, or host:port
            namespace: Optional prefix for all keys
            auto_ttl: Use predicted TTLs for writes without an explicit ttl
            ttl_source: Callable returning the latest TTL feature vector
            socket_timeout: Socket timeout in seconds
            stats_timeout: Upper bound for a metrics request
            max_connections: Connection pool size
        """
        if not redis_url:
            raise ValueError("redis_url is required")

        super().__init__(auto_ttl=auto_ttl, ttl_source=ttl_source, namespace=namespace)
        self.redis_url = normalize_redis_url(redis_url)
        self.stats_timeout = stats_timeout
        self._stats = RollingStats()
        self._closed = False

        # Lazy connection; connects on first command
        self._client = Redis.from_url(  # type: ignore[call-overload]
            url=self.redis_url,
            decode_responses=True,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
        )

    # ------------ Core Interface ------------

    async def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        try:
            data = await self._client.get(self._make_key(key))
            logger.debug("Got key '%s' from Redis (hit=%s)", key, data is not None)
            return self._from_json(data)
        except Exception as e:
            logger.error(
                f"Failed to get key '{key}' from Redis: {e}",
                extra={"key": key, "backend": self.backend_name, "error": str(e)},
                exc_info=True,
            )
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a value with optional TTL."""
        try:
            ex = self.resolve_ttl(ttl)
            payload = self._to_json(value)
            await self._client.set(name=self._make_key(key), value=payload, ex=ex)
            logger.debug("Set key '%s' in Redis with ttl %s", key, ex)
        except (TypeError, ValueError) as e:
            logger.error(
                f"Failed to serialize value for key '{key}': {e}",
                extra={"key": key, "value_type": type(value).__name__, "error": str(e)},
                exc_info=True,
            )
        except Exception as e:
            logger.error(
                f"Failed to set key '{key}' in Redis: {e}",
                extra={"key": key, "backend": self.backend_name, "ttl": ttl, "error": str(e)},
                exc_info=True,
            )

    async def delete(self, key: str) -> None:
        """Delete a single key."""
        try:
            await self._client.delete(self._make_key(key))
            logger.debug("Deleted key '%s' from Redis", key)
        except Exception as e:
            logger.error(
                f"Failed to delete key '{key}' from Redis: {e}",
                extra={"key": key, "backend": self.backend_name, "error": str(e)},
                exc_info=True,
            )

    async def has_key(self, key: str) -> bool:
        """Check if a key exists."""
        try:
            return bool(await self._client.exists(self._make_key(key)))
        except Exception as e:
            logger.error(
                f"Failed to check existence of key '{key}' in Redis: {e}",
                extra={"key": key, "backend": self.backend_name, "error": str(e)},
                exc_info=True,
            )
            return False

    async def clear(self) -> None:
        """Flush the current logical database."""
        try:
            await self._client.flushdb()
            logger.info("Cleared Redis database", extra={"backend": self.backend_name})
        except Exception as e:
            logger.error(
                f"Failed to clear Redis database: {e}",
                extra={"backend": self.backend_name, "error": str(e)},
                exc_info=True,
            )

    async def keys(self) -> list[str]:
        """
        Enumerate keys with SCAN.

        With a namespace configured only "<namespace>:*" keys are returned,
        with the prefix stripped.
        """
        pattern = f"{self.namespace}:*" if self.namespace else "*"
        found: list[str] = []
        try:
            cursor = 0
            while True:
                cursor, batch = await self._client.scan(cursor=cursor, match=pattern, count=1000)
                found.extend(self._strip_key(k) for k in batch)
                if cursor == 0:
                    break
            return found
        except Exception as e:
            logger.error(
                f"Failed to enumerate keys in Redis: {e}",
                extra={"backend": self.backend_name, "error": str(e)},
                exc_info=True,
            )
            return []

    async def disconnect(self) -> None:
        """Close the Redis client and release resources."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.aclose()
            logger.info("Disconnected Redis cache backend", extra={"url": self.redis_url})
        except Exception as e:
            logger.error(
                f"Error closing Redis client: {e}", extra={"url": self.redis_url, "error": str(e)}, exc_info=True
            )
        finally:
            try:
                await self._client.connection_pool.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting Redis connection pool: {e}", extra={"error": str(e)})

    # ------------ Metrics ------------

    async def _fetch_stats(self) -> tuple[dict[str, Any], int]:
        info = await self._client.info()
        db_size = await self._client.dbsize()
        return info, db_size

    async def get_cache_metrics(self) -> MetricsSnapshot:
        """Sample INFO counters into a MetricsSnapshot."""
        try:
            info, db_size = await asyncio.wait_for(self._fetch_stats(), timeout=self.stats_timeout)
        except TimeoutError as e:
            raise MetricsCollectionError(
                f"Stats request timed out after {self.stats_timeout} seconds",
                details={"backend": self.backend_name, "timeout": self.stats_timeout},
            ) from e
        except Exception as e:
            raise MetricsCollectionError(
                f"Failed to fetch Redis INFO: {e}",
                details={"backend": self.backend_name, "error": str(e)},
            ) from e

        if not isinstance(info, dict):
            raise MetricsCollectionError(
                "Invalid INFO payload from Redis",
                details={"backend": self.backend_name, "received": type(info).__name__},
            )

        snapshot = self._stats.sample(
            hits=info.get("keyspace_hits"),
            misses=info.get("keyspace_misses"),
            evictions=info.get("evicted_keys"),
            used_bytes=info.get("used_memory"),
            key_count=db_size,
        )
        logger.info(
            "Redis metrics collected - Keys: %s, Size: %sMB",
            snapshot.key_count,
            snapshot.cache_size,
            extra={"backend": self.backend_name},
        )
        return snapshot
