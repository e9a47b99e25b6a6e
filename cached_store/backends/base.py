"""
Abstract backend interfaces.

Defines the uniform operation surface that both the local and the remote
store implement, so the orchestrator can drive either one in either role.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from ..operations import ReadOperation


class StoreBackend(ABC):
    """Abstract interface for a data store.

    Every operation takes its argument plus the per-call backend sub-options,
    returns the response, and raises on failure. Sub-options are layered over
    the backend's own defaults (see ``configure``) for that call only.

    Attributes:
        name: Short backend name used in provenance and logs
        network: Whether responses originate from the network
    """

    name: str = "backend"
    network: bool = False

    def __init__(self) -> None:
        self._defaults: dict[str, Any] = {}

    def configure(self, options: Mapping[str, Any]) -> None:
        """Replace this backend's default sub-options."""
        self._defaults = dict(options)

    def _effective(self, options: Mapping[str, Any] | None) -> dict[str, Any]:
        """Sub-options for one call: defaults overlaid with call options."""
        return {**self._defaults, **(options or {})}

    @abstractmethod
    async def aggregate(self, aggregation: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        """Aggregate objects in the collection.

        Args:
            aggregation: Aggregation spec (key, initial, reduce, condition)
            options: Per-call sub-options

        Returns:
            Aggregation result
        """
        ...

    @abstractmethod
    async def query(self, id: str, options: Mapping[str, Any]) -> Any:
        """Fetch one object by id."""
        ...

    @abstractmethod
    async def query_with_query(self, query: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        """Fetch the objects matching a query.

        Args:
            query: Query spec (filter, sort, limit, skip)
            options: Per-call sub-options

        Returns:
            List of objects
        """
        ...

    @abstractmethod
    async def save(self, obj: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        """Create or update an object and return the stored version."""
        ...

    @abstractmethod
    async def remove(self, obj: Any, options: Mapping[str, Any]) -> Any:
        """Remove one object (given as object or id)."""
        ...

    @abstractmethod
    async def remove_with_query(self, query: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        """Remove the objects matching a query."""
        ...

    async def close(self) -> None:
        """Release resources held by the backend."""
        return None


class LocalBackend(StoreBackend):
    """Durable on-device store that also serves as the cache."""

    name = "local"
    network = False

    @abstractmethod
    async def put(self, operation: ReadOperation, key: Any, value: Any) -> None:
        """Write or invalidate a cached read result.

        Args:
            operation: Read slot to update
            key: Object id, query spec, or aggregation spec
            value: Response to cache, or None to invalidate
        """
        ...


class RemoteBackend(StoreBackend):
    """Network store; the source of truth for writes."""

    name = "remote"
    network = True

    @abstractmethod
    async def login(self, credentials: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        """Log a user in and return the user record."""
        ...

    @abstractmethod
    async def logout(self, options: Mapping[str, Any]) -> Any:
        """Log the current user out."""
        ...
