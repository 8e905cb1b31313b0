"""
Cachetron - Cache Factory

Canonical factory for creating cache adapters from a CacheConfiguration.
The CacheManager is the only long-lived owner of adapters; this module
only builds them.

Examples:
    from cachetron.cache.factory import create_cache

    cache = create_cache({"type": "redis", "url": "redis://localhost:6379"})
    mc = create_cache({"type": "memcache", "url": "localhost:11211", "autoTTL": True})
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..config import CacheBackend, CacheConfiguration, RuntimeSettings, parse_cache_config
from ..errors import ConfigurationError
from .interface import CacheInterface, TTLSource

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = [backend.value for backend in CacheBackend]


def _create_redis_cache(
    config: CacheConfiguration,
    ttl_source: TTLSource | None,
    settings: RuntimeSettings,
) -> CacheInterface:
    """Internal helper to construct a redis cache backend."""
    from .backends.redis import RedisCacheBackend

    return RedisCacheBackend(
        redis_url=config.url,
        namespace=config.namespace,
        auto_ttl=config.auto_ttl,
        ttl_source=ttl_source,
        socket_timeout=settings.socket_timeout,
        stats_timeout=settings.stats_timeout,
    )


def _create_memcache_cache(
    config: CacheConfiguration,
    ttl_source: TTLSource | None,
    settings: RuntimeSettings,
) -> CacheInterface:
    """Internal helper to construct a memcached cache backend."""
    from .backends.memcache import MemcacheCacheBackend

    return MemcacheCacheBackend(
        server=config.url,
        namespace=config.namespace,
        auto_ttl=config.auto_ttl,
        ttl_source=ttl_source,
        stats_timeout=settings.stats_timeout,
    )


def create_cache(
    config: CacheConfiguration | Mapping[str, Any],
    ttl_source: TTLSource | None = None,
    settings: RuntimeSettings | None = None,
) -> CacheInterface:
    """
    Create a cache adapter based on configuration.

    Validation happens before any adapter is constructed.

    Args:
        config: Cache configuration (model or raw mapping from cachetron.json)
        ttl_source: Supplier of the latest TTL feature vector for adaptive TTL
        settings: Runtime settings (timeouts); defaults are used when omitted

    Returns:
        Configured cache adapter (not yet connected)

    Raises:
        ConfigurationError: If type/url are missing, empty or unknown
    """
    if not isinstance(config, CacheConfiguration):
        config = parse_cache_config(config)
    settings = settings or RuntimeSettings()

    logger.info(
        "Creating cache adapter with backend: %s",
        config.type.value,
        extra={"backend": config.type.value, "auto_ttl": config.auto_ttl},
    )

    try:
        if config.type == CacheBackend.REDIS:
            return _create_redis_cache(config, ttl_source, settings)
        if config.type == CacheBackend.MEMCACHE:
            return _create_memcache_cache(config, ttl_source, settings)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error creating cache adapter: %s",
            e,
            extra={"backend": config.type.value, "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to create cache adapter: {e}",
            details={"backend": config.type.value, "error": str(e)},
        ) from e

    raise ConfigurationError(
        f"Unknown cache type: {config.type}",
        details={"backend": str(config.type), "supported": SUPPORTED_BACKENDS},
    )
