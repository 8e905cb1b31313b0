"""
Cachetron - Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import (
    DEFAULT_CACHE_CONFIG,
    default_config_path,
    load_cache_config,
    load_settings,
    parse_cache_config,
    update_cache_config,
    write_default_config,
)
from .schemas import (
    CacheBackend,
    CacheConfigUpdate,
    CacheConfiguration,
    LogFormat,
    LogLevel,
    RuntimeSettings,
)

__all__ = [
    # Loader functions
    "load_cache_config",
    "parse_cache_config",
    "update_cache_config",
    "write_default_config",
    "default_config_path",
    "load_settings",
    "DEFAULT_CACHE_CONFIG",
    # Models
    "CacheConfiguration",
    "CacheConfigUpdate",
    "RuntimeSettings",
    # Enums
    "CacheBackend",
    "LogLevel",
    "LogFormat",
]
