"""
Cachetron - Cache Backend Abstraction Layer

One cache interface over Redis and Memcached, with predicted TTLs and hot
backend migration driven by edits to cachetron.json.
"""

__version__ = "1.0.0"

from .cache import CacheHandle, CacheInterface, CacheManager, create_cache
from .config import update_cache_config
from .errors import CachetronError, ConfigurationError
from .ml import predict_ttl

__all__ = [
    "CacheManager",
    "CacheHandle",
    "CacheInterface",
    "create_cache",
    "update_cache_config",
    "predict_ttl",
    "CachetronError",
    "ConfigurationError",
]
