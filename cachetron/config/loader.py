"""
Cachetron - Configuration Loader

Loads and validates:
- the persisted cache configuration (cachetron.json), re-read on every change
- runtime settings from environment variables and .env files
"""

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import CacheConfigUpdate, CacheConfiguration, RuntimeSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "cachetron.json"

DEFAULT_CACHE_CONFIG: dict[str, Any] = {
    "type": "redis",
    "url": "redis://localhost:6379",
}


def default_config_path() -> Path:
    """Location of cachetron.json: $CACHETRON_CONFIG_PATH or the working directory."""
    return Path(os.getenv("CACHETRON_CONFIG_PATH", str(Path.cwd() / DEFAULT_CONFIG_FILENAME)))


def parse_cache_config(data: Mapping[str, Any]) -> CacheConfiguration:
    """
    Validate a raw configuration mapping.

    Raises:
        ConfigurationError: If type/url are missing, empty or invalid
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            "Cache configuration must be a JSON object",
            details={"received": type(data).__name__},
        )
    try:
        return CacheConfiguration.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigurationError(
            "Cache config missing or invalid 'type' or 'url'",
            details={"validation_errors": e.errors(include_url=False, include_context=False)},
        ) from e


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Config file is not valid JSON: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read config file: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e


def load_cache_config(path: str | Path | None = None) -> CacheConfiguration:
    """
    Load the persisted cache configuration.

    Args:
        path: Config file path (default: default_config_path())

    Returns:
        Validated CacheConfiguration

    Raises:
        ConfigurationError: If the file is missing or its content is invalid
    """
    config_path = Path(path) if path else default_config_path()

    if not config_path.exists():
        raise ConfigurationError(
            f"Config file not found: {config_path}",
            details={"path": str(config_path)},
        )

    config = parse_cache_config(_read_json(config_path))
    logger.info(
        "Loaded cache config from %s",
        config_path,
        extra={"path": str(config_path), "backend": config.type.value, "auto_ttl": config.auto_ttl},
    )
    return config


def write_default_config(path: str | Path | None = None) -> bool:
    """
    Create cachetron.json with the default configuration if it is absent.

    Returns:
        True if the file was created, False if it already existed
    """
    config_path = Path(path) if path else default_config_path()
    if config_path.exists():
        logger.debug("Config file already exists at %s", config_path)
        return False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(DEFAULT_CACHE_CONFIG, indent=2), encoding="utf-8")
    logger.info("Created default cache config at %s", config_path)
    return True


def update_cache_config(update: Mapping[str, Any], path: str | Path | None = None) -> dict[str, Any]:
    """
    Validate an update and merge it over the existing config file.

    The rewrite is picked up by any running CacheManager watching the file.

    Returns:
        The merged configuration as written to disk

    Raises:
        ConfigurationError: If the update fails validation or the file is unreadable
    """
    try:
        validated = CacheConfigUpdate.model_validate(dict(update))
    except ValidationError as e:
        raise ConfigurationError(
            "Please provide a correct cache configuration",
            details={"validation_errors": e.errors(include_url=False, include_context=False)},
        ) from e

    config_path = Path(path) if path else default_config_path()
    existing = _read_json(config_path) if config_path.exists() else {}
    if not isinstance(existing, dict):
        existing = {}

    merged = {**existing, **validated.model_dump(by_alias=True, exclude_none=True)}
    config_path.write_text(json.dumps(merged, indent=2), encoding="utf-8")
    logger.info(
        "Updated cache config at %s",
        config_path,
        extra={"path": str(config_path), "backend": merged.get("type")},
    )
    return merged


def load_settings(env_file: str | None = None) -> RuntimeSettings:
    """
    Load runtime settings from environment variables and an optional .env file.

    Raises:
        ConfigurationError: If settings are invalid
    """
    env_path = Path(env_file) if env_file else Path.cwd() / ".env"
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        load_dotenv(env_path, override=True)
    else:
        logger.debug("No .env file found, using environment variables only")

    max_entries = os.getenv("CACHETRON_METRICS_MAX_ENTRIES")
    settings_dict = {
        "config_path": str(default_config_path()),
        "metrics_path": os.getenv("CACHETRON_METRICS_PATH", "./data/metric.json"),
        "metrics_interval": os.getenv("CACHETRON_METRICS_INTERVAL", "5"),
        "metrics_max_entries": max_entries or None,
        "debounce_seconds": os.getenv("CACHETRON_DEBOUNCE_SECONDS", "0.2"),
        "stats_timeout": os.getenv("CACHETRON_STATS_TIMEOUT", "5"),
        "socket_timeout": os.getenv("CACHETRON_SOCKET_TIMEOUT", "5"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "log_format": os.getenv("LOG_FORMAT", "json").lower(),
        "dashboard_port": os.getenv("PORT", "3000"),
    }

    try:
        return RuntimeSettings(**settings_dict)  # type: ignore[arg-type]
    except ValidationError as e:
        logger.error(
            f"Settings validation failed: {e}",
            extra={"validation_errors": e.errors(include_url=False)},
        )
        raise ConfigurationError(
            "Settings validation failed. Check your environment variables.",
            details={"validation_errors": e.errors(include_url=False, include_context=False)},
        ) from e
