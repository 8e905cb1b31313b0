"""
Cachetron - Cache Interface

Defines the abstract interface that all cache backends must implement,
plus the behaviour shared by every backend: JSON value encoding,
optional key namespacing and adaptive TTL resolution.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

from ..ml.prediction import predict_ttl
from .metrics import MetricsSnapshot

logger = logging.getLogger(__name__)

# Returns the latest TTL feature vector, or None before the first metrics sample
TTLSource = Callable[[], Sequence[float] | None]


class CacheInterface(ABC):
    """
    Abstract base class for cache backends.

    All cache implementations must implement this interface so the
    CacheManager can hold any backend and migrate between them.
    """

    backend_name: str = "cache"

    def __init__(
        self,
        auto_ttl: bool = False,
        ttl_source: TTLSource | None = None,
        namespace: str | None = None,
    ) -> None:
        self.auto_ttl = auto_ttl
        self.ttl_source = ttl_source
        self.namespace = namespace.strip() if namespace and namespace.strip() else None

    # ------------ Helpers ------------

    def _make_key(self, key: str) -> str:
        """Create namespaced key."""
        return f"{self.namespace}:{key}" if self.namespace else key

    def _strip_key(self, raw_key: str) -> str:
        """Remove the namespace prefix from a backend key."""
        if self.namespace and raw_key.startswith(f"{self.namespace}:"):
            return raw_key[len(self.namespace) + 1 :]
        return raw_key

    @staticmethod
    def _to_json(value: Any) -> str:
        """Serialize value to JSON string."""
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))

    @staticmethod
    def _from_json(data: str | bytes | None) -> Any | None:
        """Deserialize JSON string to Python object. Returns None if data is None."""
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            return json.loads(data)
        except ValueError as e:
            logger.warning(
                f"Failed to decode JSON from cache, returning raw data: {e}",
                extra={"data_preview": data[:100], "error": str(e)},
            )
            return data

    def resolve_ttl(self, ttl: int | None) -> int | None:
        """
        Pick the TTL for a write.

        - an explicit positive ttl wins
        - otherwise, with adaptive TTL on and metrics available, the predicted TTL
        - otherwise None (backend default retention, no expiry)
        """
        if ttl is not None and ttl > 0:
            return int(ttl)

        if self.auto_ttl and self.ttl_source is not None:
            features = self.ttl_source()
            if features is not None:
                predicted = predict_ttl(features)
                logger.debug(
                    "Using predicted TTL %ss",
                    predicted,
                    extra={"backend": self.backend_name, "ttl": predicted},
                )
                return predicted

        return None

    # ------------ Core Interface ------------

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """
        Retrieve a value from the cache.

        Never raises on backend failure; errors are logged and None is returned.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """
        Store a value in the cache.

        Args:
            key: Cache key
            value: Value to cache (must be JSON serializable)
            ttl: Time-to-live in seconds (None or 0 = backend default / adaptive TTL)
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key from the cache."""

    @abstractmethod
    async def has_key(self, key: str) -> bool:
        """Check if a key exists. Returns False on backend failure."""

    @abstractmethod
    async def clear(self) -> None:
        """Wipe the whole logical database this adapter points at."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """
        List keys visible to this adapter.

        Backends without key enumeration return only keys written by this
        process since the adapter was constructed.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the backend connection. Safe to call more than once."""

    @abstractmethod
    async def get_cache_metrics(self) -> MetricsSnapshot:
        """
        Sample backend counters into a MetricsSnapshot.

        Raises:
            MetricsCollectionError: If stats are unavailable, malformed or time out
        """
