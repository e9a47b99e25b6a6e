"""
Custom exceptions for the cached store.

Backends raise these so the orchestrator can hand callers a consistent
error object regardless of which store failed.
"""

from __future__ import annotations

from typing import Any


class CachedStoreError(Exception):
    """Base exception for all cached store errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CachedStoreError):
    """Raised when store configuration is invalid (e.g., unknown cache policy)."""

    def __init__(self, field: str, reason: str, value: Any = None):
        details: dict[str, Any] = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = repr(value)
        super().__init__(f"Invalid configuration for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class BackendError(CachedStoreError):
    """Raised when a backend operation fails."""

    def __init__(
        self,
        backend: str,
        operation: str,
        reason: str,
        details: dict | None = None,
    ):
        merged = {"backend": backend, "operation": operation, "reason": reason}
        merged.update(details or {})
        super().__init__(f"{backend} {operation} failed: {reason}", merged)
        self.backend = backend
        self.operation = operation
        self.reason = reason


class EntityNotFoundError(BackendError):
    """Raised when the local store holds no entry for the requested key."""

    def __init__(self, collection: str, key: Any, operation: str = "query"):
        super().__init__(
            "local",
            operation,
            f"no cached entry in {collection} for {key!r}",
            {"collection": collection, "key": repr(key)},
        )
        self.collection = collection
        self.key = key


class RemoteRequestError(BackendError):
    """Raised when the remote API answers with an error status."""

    def __init__(
        self,
        status: int,
        url: str,
        description: str | None = None,
        operation: str = "request",
    ):
        details: dict[str, Any] = {"status": status, "url": url}
        if description:
            details["description"] = description
        super().__init__(
            "remote",
            operation,
            f"HTTP {status}" + (f": {description}" if description else ""),
            details,
        )
        self.status = status
        self.url = url
        self.description = description


class StorageConnectionError(BackendError):
    """Raised when connection to the remote store fails.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | None = None, operation: str = "request"):
        details = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        super().__init__("remote", operation, f"connection failed to {endpoint}", details)
        self.endpoint = endpoint
        self.cause = cause


class StorageIOError(BackendError):
    """Raised when a local storage I/O operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details: dict[str, Any] = {}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        reason = "storage I/O error" + (f": {path}" if path else "")
        super().__init__("local", operation, reason, details)
        self.path = path
        self.cause = cause
