"""Tests for CachedStore configuration, session pass-through, and lifecycle."""

from __future__ import annotations

import logging

import pytest

from cached_store import (
    CachedStore,
    CachePolicy,
    ConfigurationError,
    FileLocalBackend,
    HttpRemoteBackend,
    StoreConfig,
    Success,
)
from cached_store.exceptions import RemoteRequestError
from cached_store.logging_utils import StructuredJsonFormatter


class TestConfigure:
    """Instance-level configuration."""

    def test_constructor_configuration(self, local, remote) -> None:
        store = CachedStore("books", local, remote, policy="cachefirst")

        assert store.options.policy is CachePolicy.CACHE_FIRST

    def test_configure_merges_over_previous(self, store) -> None:
        store.configure(policy=CachePolicy.BOTH)
        store.configure(error=lambda error, info: None)

        assert store.options.policy is CachePolicy.BOTH

    def test_configure_store_pushes_remote_defaults(self, store, remote) -> None:
        store.configure(store={"headers": {"X-Client": "tests"}})

        assert remote.configured == [{"headers": {"X-Client": "tests"}}]

    def test_configure_without_store_leaves_remote_alone(self, store, remote) -> None:
        store.configure(policy=CachePolicy.NO_CACHE)

        assert remote.configured == []

    def test_invalid_policy_rejected(self, store) -> None:
        with pytest.raises(ConfigurationError):
            store.configure(policy="sometimes")

        assert store.options.policy is CachePolicy.NETWORK_FIRST

    async def test_invalid_call_policy_raises_before_any_backend_call(
        self, store, local, remote, recorder
    ) -> None:
        with pytest.raises(ConfigurationError):
            await store.query("b1", policy="networkfrist", **recorder.options)

        assert local.calls == []
        assert remote.calls == []
        assert recorder.completions == 0

    async def test_call_options_do_not_leak_into_instance(self, store, local, recorder) -> None:
        local.respond("query", {"_id": "b1"})

        await store.query("b1", policy=CachePolicy.CACHE_ONLY, **recorder.options)

        assert store.options.policy is CachePolicy.NETWORK_FIRST

    async def test_instance_callbacks_used_when_call_gives_none(self, local, remote, recorder) -> None:
        local.respond("query", {"_id": "b1"})
        store = CachedStore("books", local, remote, policy=CachePolicy.CACHE_ONLY, **recorder.options)

        await store.query("b1")

        assert recorder.successes and recorder.completions == 1


class TestSession:
    """Login and logout bypass the cache."""

    async def test_login_success(self, store, local, remote, recorder, events) -> None:
        user = {"_id": "u1", "_kmd": {"authtoken": "token"}}
        remote.respond("login", user)

        outcome = await store.login({"username": "paul", "password": "x"}, **recorder.options)

        assert isinstance(outcome, Success)
        assert outcome.response == user
        assert remote.calls[0][1] == {"username": "paul", "password": "x"}
        assert local.calls == []
        assert events == ["remote:login", "success:remote", "complete"]

    async def test_login_failure(self, store, remote, recorder, events) -> None:
        failure = RemoteRequestError(401, "https://api.example.com/user/k/login", "InvalidCredentials")
        remote.respond("login", failure)

        await store.login({"username": "paul", "password": "wrong"}, **recorder.options)

        assert recorder.errors[0][0] is failure
        assert events == ["remote:login", "error:remote", "complete"]

    async def test_logout(self, store, remote, recorder, events) -> None:
        remote.respond("logout", None)

        await store.logout(store={"timeout": 3}, **recorder.options)

        assert remote.calls == [("logout", None, {"timeout": 3})]
        assert events == ["remote:logout", "success:remote", "complete"]

    async def test_raising_success_callback_still_completes(self, store, remote, recorder) -> None:
        """An exception from the caller's success callback propagates after complete."""
        remote.respond("login", {"_id": "u1"})

        def explode(response, info) -> None:
            raise ValueError("callback failed")

        with pytest.raises(ValueError, match="callback failed"):
            await store.login({"username": "paul"}, success=explode, complete=recorder.complete)

        assert recorder.completions == 1


class TestLogging:
    """Store log records carry their collection, call and provenance context."""

    async def test_read_records_carry_call_context(self, store, local, recorder, caplog) -> None:
        local.respond("query", {"_id": "b1"})

        with caplog.at_level(logging.DEBUG, logger="cached_store"):
            await store.query("b1", policy=CachePolicy.CACHE_ONLY, **recorder.options)

        record = next(r for r in caplog.records if r.name == "cached_store.store")
        assert record.collection == "books"
        assert record.operation == "query"
        assert record.policy == "cacheonly"

    async def test_failure_records_carry_provenance(self, store, local, remote, caplog) -> None:
        remote.respond("query", RemoteRequestError(503, "https://api.example.com/b1"))
        local.respond("query", {"_id": "b1"})

        with caplog.at_level(logging.DEBUG, logger="cached_store"):
            await store.query("b1", policy=CachePolicy.NETWORK_FIRST)

        failed = [r for r in caplog.records if getattr(r, "backend", None) == "remote"]
        assert failed
        assert all(r.network is True and r.operation == "query" for r in failed)


class TestLifecycle:
    """Settling and closing."""

    async def test_close_waits_for_maintenance_and_closes_backends(
        self, local, remote, recorder
    ) -> None:
        remote.respond("query", {"_id": "b1"})
        store = CachedStore("books", local, remote)

        await store.query("b1", **recorder.options)
        assert store.pending_maintenance == 1

        await store.close()

        assert recorder.completions == 1
        assert local.puts
        assert local.closed and remote.closed

    async def test_async_context_manager(self, local, remote) -> None:
        async with CachedStore("books", local, remote) as store:
            assert store.collection == "books"

        assert local.closed and remote.closed


class TestCreate:
    """Building a store from StoreConfig."""

    async def test_create_wires_concrete_backends(self, tmp_path) -> None:
        config = StoreConfig(
            policy="cachefirst",
            local_path=str(tmp_path),
            api_url="https://api.example.com/",
            app_key="kid_123",
            app_secret="secret",
            request_timeout=5,
            store_options={"headers": {"X-Client": "tests"}},
        )

        store = CachedStore.create("books", config)
        try:
            assert isinstance(store.local, FileLocalBackend)
            assert isinstance(store.remote, HttpRemoteBackend)
            assert store.local.path == tmp_path / "books.json"
            assert store.remote.api_url == "https://api.example.com"
            assert store.remote.request_timeout == 5
            assert store.options.policy is CachePolicy.CACHE_FIRST
            assert dict(store.options.store) == {"headers": {"X-Client": "tests"}}
        finally:
            await store.close()

    async def test_create_extra_configuration_wins(self, tmp_path) -> None:
        config = StoreConfig(local_path=str(tmp_path), api_url="https://a", app_key="k")

        store = CachedStore.create("books", config, policy=CachePolicy.NO_CACHE)
        try:
            assert store.options.policy is CachePolicy.NO_CACHE
        finally:
            await store.close()

    def test_create_requires_remote_settings(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            CachedStore.create("books", StoreConfig(local_path=str(tmp_path)))

        assert exc_info.value.field == "api_url"

    async def test_create_json_log_format_installs_handler(self, tmp_path) -> None:
        """log_format "json" routes package logs through the structured formatter."""
        config = StoreConfig(
            local_path=str(tmp_path),
            api_url="https://a",
            app_key="k",
            log_format="json",
            log_level="debug",
        )
        package_logger = logging.getLogger("cached_store")

        store = CachedStore.create("books", config)
        try:
            formatters = [h.formatter for h in package_logger.handlers]
            assert any(isinstance(f, StructuredJsonFormatter) for f in formatters)
            assert package_logger.level == logging.DEBUG
        finally:
            await store.close()
            package_logger.handlers.clear()
            package_logger.setLevel(logging.NOTSET)

    async def test_create_text_log_format_leaves_logging_alone(self, tmp_path) -> None:
        config = StoreConfig(local_path=str(tmp_path), api_url="https://a", app_key="k")
        before = list(logging.getLogger("cached_store").handlers)

        store = CachedStore.create("books", config)
        try:
            assert logging.getLogger("cached_store").handlers == before
        finally:
            await store.close()
