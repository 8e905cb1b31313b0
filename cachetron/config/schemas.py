"""
Cachetron - Configuration Schemas

Typed configuration models using Pydantic for validation and type safety.

Two layers of configuration exist:
- CacheConfiguration: the persisted cachetron.json file, editable at runtime
  by an external actor. Changes trigger backend migration.
- RuntimeSettings: process-level knobs read once from the environment.
"""

import re
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

HOST_PORT_PATTERN = re.compile(r"^([\w.-]+):(\d+)$")


class CacheBackend(str, Enum):
    """Supported cache backends."""

    REDIS = "redis"
    MEMCACHE = "memcache"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    TEXT = "text"


def is_valid_cache_url(value: str) -> bool:
    """Accept an absolute URL (scheme + location) or a bare host:port pair."""
    if HOST_PORT_PATTERN.match(value):
        return True
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


class CacheConfiguration(BaseModel):
    """Persisted cache configuration (cachetron.json)."""

    type: CacheBackend = Field(description="Backend family: redis or memcache")
    url: str = Field(description="Connection URL or host:port")
    auto_ttl: bool = Field(default=False, alias="autoTTL", description="Enable predicted TTL on writes")
    namespace: str | None = Field(default=None, description="Optional key prefix")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        """Backend names are matched case-insensitively."""
        if isinstance(v, str):
            v = v.strip().lower()
            if not v:
                raise ValueError("type must be a non-empty string")
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure url is a valid absolute URL or host:port."""
        v = v.strip()
        if not v:
            raise ValueError("url must be a non-empty string")
        if not is_valid_cache_url(v):
            raise ValueError("url must be a valid URL or host:port")
        return v

    def identity(self) -> tuple[str, str]:
        """Fields whose change requires a migration to a new backend."""
        return (self.type.value, self.url)

    def to_file_dict(self) -> dict[str, Any]:
        """Serialize with the on-disk key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CacheConfigUpdate(BaseModel):
    """Schema for programmatic updates to cachetron.json."""

    type: str = Field(min_length=1, description="Backend type, non-empty")
    url: str = Field(description="Connection URL or host:port")
    auto_ttl: bool | None = Field(default=None, alias="autoTTL")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not is_valid_cache_url(v):
            raise ValueError("URL must be a valid host:port format or a valid URL")
        return v


class RuntimeSettings(BaseModel):
    """Process-level settings for the cache manager and its background tasks."""

    config_path: str = Field(default="cachetron.json", description="Path to the persisted cache configuration")
    metrics_path: str = Field(default="./data/metric.json", description="Path to the metrics JSON array file")
    metrics_interval: float = Field(default=5.0, gt=0, description="Seconds between metrics samples")
    metrics_max_entries: int | None = Field(
        default=None,
        ge=1,
        description="Keep only the newest N samples (None = unbounded)",
    )
    debounce_seconds: float = Field(default=0.2, ge=0, description="Quiet window before acting on config edits")
    stats_timeout: float = Field(default=5.0, gt=0, description="Hard timeout for backend stats requests")
    socket_timeout: float = Field(default=5.0, gt=0, description="Backend socket timeout in seconds")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Log output format")
    dashboard_port: int = Field(default=3000, ge=1, le=65535, description="Dashboard HTTP port")

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
