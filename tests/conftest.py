"""
Shared test configuration and fixtures.

Provides in-memory scripted backends that record every call into a shared
event log, so tests can assert on the exact order of backend calls and
caller notifications.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from cached_store import CachedStore, ResponseInfo
from cached_store.backends.base import LocalBackend, RemoteBackend
from cached_store.exceptions import BackendError
from cached_store.operations import ReadOperation


class ScriptedBackendMixin:
    """Answers each operation with a scripted response or exception."""

    name: str

    def _init_script(self, events: list[str]) -> None:
        self.events = events
        self.responses: dict[str, Any] = {}
        self.calls: list[tuple[str, Any, dict[str, Any]]] = []

    def respond(self, operation: str, value: Any) -> None:
        """Script the result of an operation. Exceptions are raised."""
        self.responses[operation] = value

    async def _handle(self, operation: str, arg: Any, options: Mapping[str, Any]) -> Any:
        self.calls.append((operation, arg, dict(options)))
        self.events.append(f"{self.name}:{operation}")
        # Yield like a real I/O call would.
        await asyncio.sleep(0)
        if operation not in self.responses:
            raise BackendError(self.name, operation, "not scripted")
        result = self.responses[operation]
        if isinstance(result, Exception):
            raise result
        return result

    async def aggregate(self, aggregation, options):
        return await self._handle("aggregate", aggregation, options)

    async def query(self, id, options):
        return await self._handle("query", id, options)

    async def query_with_query(self, query, options):
        return await self._handle("query_with_query", query, options)

    async def save(self, obj, options):
        return await self._handle("save", obj, options)

    async def remove(self, obj, options):
        return await self._handle("remove", obj, options)

    async def remove_with_query(self, query, options):
        return await self._handle("remove_with_query", query, options)


class FakeLocalBackend(ScriptedBackendMixin, LocalBackend):
    """Scripted local backend that records cache maintenance."""

    def __init__(self, events: list[str]) -> None:
        super().__init__()
        self._init_script(events)
        self.puts: list[tuple[ReadOperation, Any, Any]] = []
        self.put_error: Exception | None = None
        self.closed = False

    async def put(self, operation: ReadOperation, key: Any, value: Any) -> None:
        self.events.append("local:put")
        await asyncio.sleep(0)
        if self.put_error is not None:
            raise self.put_error
        self.puts.append((operation, key, value))

    async def close(self) -> None:
        self.closed = True


class FakeRemoteBackend(ScriptedBackendMixin, RemoteBackend):
    """Scripted remote backend with session calls."""

    def __init__(self, events: list[str]) -> None:
        super().__init__()
        self._init_script(events)
        self.configured: list[dict[str, Any]] = []
        self.closed = False

    def configure(self, options: Mapping[str, Any]) -> None:
        super().configure(options)
        self.configured.append(dict(options))

    async def login(self, credentials, options):
        return await self._handle("login", credentials, options)

    async def logout(self, options):
        return await self._handle("logout", None, options)

    async def close(self) -> None:
        self.closed = True


class CallbackRecorder:
    """Collects caller notifications and logs them into the event list."""

    def __init__(self, events: list[str]) -> None:
        self.events = events
        self.successes: list[tuple[Any, ResponseInfo]] = []
        self.errors: list[tuple[Exception, ResponseInfo]] = []
        self.completions = 0

    def success(self, response: Any, info: ResponseInfo) -> None:
        self.successes.append((response, info))
        self.events.append(f"success:{info.backend}")

    def error(self, error: Exception, info: ResponseInfo) -> None:
        self.errors.append((error, info))
        self.events.append(f"error:{info.backend}")

    def complete(self) -> None:
        self.completions += 1
        self.events.append("complete")

    @property
    def options(self) -> dict[str, Any]:
        return {"success": self.success, "error": self.error, "complete": self.complete}


@pytest.fixture
def events() -> list[str]:
    """Shared, ordered log of backend calls and notifications."""
    return []


@pytest.fixture
def local(events: list[str]) -> FakeLocalBackend:
    return FakeLocalBackend(events)


@pytest.fixture
def remote(events: list[str]) -> FakeRemoteBackend:
    return FakeRemoteBackend(events)


@pytest.fixture
def recorder(events: list[str]) -> CallbackRecorder:
    return CallbackRecorder(events)


@pytest.fixture
async def store(local: FakeLocalBackend, remote: FakeRemoteBackend):
    """Cached store over the fake backends for the 'books' collection."""
    books = CachedStore("books", local, remote)
    yield books
    await books.close()
