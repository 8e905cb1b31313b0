"""
Cachetron - Core Error Types

Defines the exception hierarchy for the cache layer.
All exceptions inherit from CachetronError for consistent error handling.

Taxonomy:
- ConfigurationError: missing file, missing/invalid type or url (fatal to acquire)
- TransportError: network/backend failure (fail-soft on reads)
- MigrationError: failure while copying keys between backends (logged, non-fatal)
- MetricsCollectionError: malformed stats payload or stats timeout (sample skipped)
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for structured error payloads."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    MIGRATION_ERROR = "MIGRATION_ERROR"
    METRICS_ERROR = "METRICS_ERROR"
    CACHE_FAILURE = "CACHE_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CachetronError(Exception):
    """Base exception for all Cachetron errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses and logs."""
        return {
            "error": self.__class__.__name__,
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CachetronError):
    """Raised when cache configuration is invalid or missing."""

    code = ErrorCode.CONFIGURATION_ERROR


class CacheError(CachetronError):
    """Base exception for cache-related errors."""

    code = ErrorCode.CACHE_FAILURE


class TransportError(CacheError):
    """Raised when a backend operation fails at the network/backend level."""

    code = ErrorCode.TRANSPORT_ERROR

    def __init__(self, backend: str, operation: str, details: dict[str, Any] | None = None):
        message = f"{backend} backend failed during '{operation}'"
        super().__init__(message, {"backend": backend, "operation": operation, **(details or {})})
        self.backend = backend
        self.operation = operation


class MigrationError(CacheError):
    """Raised when copying keys from the old backend into the new one fails."""

    code = ErrorCode.MIGRATION_ERROR


class MetricsCollectionError(CacheError):
    """Raised when backend statistics cannot be fetched or parsed."""

    code = ErrorCode.METRICS_ERROR
