"""
Cachetron - Cache Backends

Exports available cache backend implementations.
"""

from .memcache import MemcacheCacheBackend
from .redis import RedisCacheBackend

__all__ = [
    "MemcacheCacheBackend",
    "RedisCacheBackend",
]
