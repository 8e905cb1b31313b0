"""
Cachetron - Cache Module

Provides caching functionality with pluggable backends and hot migration.

- interface.py: Abstract cache interface all backends must implement
- backends/: Redis and Memcached adapters
- factory.py: Builds an adapter from a CacheConfiguration
- manager.py: Owns the active adapter, watches config and migrates
- metrics.py: Rolling hit/miss/eviction statistics shared by adapters

Usage:
    from cachetron.cache import CacheManager

    async with CacheManager(config_path="cachetron.json") as manager:
        cache = manager.handle()
        await cache.set("key", "value")
        value = await cache.get("key")
"""

from .factory import create_cache
from .interface import CacheInterface
from .manager import CacheHandle, CacheManager, ManagerState
from .metrics import MetricsSnapshot, RollingStats

__all__ = [
    # Factory
    "create_cache",
    # Manager
    "CacheManager",
    "CacheHandle",
    "ManagerState",
    # Interface
    "CacheInterface",
    # Metrics
    "MetricsSnapshot",
    "RollingStats",
]
