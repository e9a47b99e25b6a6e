"""
Cached store combining a local store with a remote store.

Architecture:
- Reads are routed by cache policy: one store is primary, the other is
  used as fallback, as a second source, or not at all
- Writes always go to the remote store; the local store is updated or
  invalidated afterwards in the background
- Network responses refresh the local store in the background
- Every call notifies success or error exactly once and complete exactly
  once, after background maintenance settled

Example:
    >>> store = CachedStore.create("books", StoreConfig.from_environment())
    >>> async with store:
    ...     outcome = await store.query(
    ...         "book-1",
    ...         policy=CachePolicy.CACHE_FIRST,
    ...         success=lambda book, info: print(book, info.network),
    ...     )
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .backends.base import LocalBackend, RemoteBackend, StoreBackend
from .backends.local import FileLocalBackend
from .backends.remote import HttpRemoteBackend
from .config import StoreConfig
from .logging_utils import (
    StoreLoggerAdapter,
    configure_structured_logging,
    get_store_logger,
    provenance,
)
from .maintenance import MaintenanceScheduler
from .operations import Failure, Outcome, ReadOperation, Success, WriteOperation, info_for
from .options import DEFAULT_OPTIONS, StoreOptions, merge_options
from .policy import should_call_network_first
from .reader import ReadOrchestrator
from .writer import WriteOrchestrator


class CachedStore:
    """Policy-driven store over a local and a remote backend.

    Effective options for each call are the built-in defaults, overlaid by
    this store's configuration, overlaid by the call's keyword options.
    Recognized options: policy, store, success, error, complete.
    """

    def __init__(
        self,
        collection: str,
        local: LocalBackend,
        remote: RemoteBackend,
        *,
        options: StoreOptions | None = None,
        **configuration: Any,
    ) -> None:
        """Initialize the cached store.

        Args:
            collection: Collection name
            local: Local (cache) backend
            remote: Remote (network) backend
            options: Base options snapshot (default: built-in defaults)
            **configuration: Options applied via ``configure``

        Raises:
            ConfigurationError: If configuration holds unknown options or policies
        """
        self.collection = collection
        self.local = local
        self.remote = remote
        self.options = options or DEFAULT_OPTIONS

        self._log = StoreLoggerAdapter(get_store_logger("store"), {"collection": collection})
        self._scheduler = MaintenanceScheduler()
        self._reader = ReadOrchestrator(local, self._scheduler)
        self._writer = WriteOrchestrator(collection, local, remote, self._scheduler)

        if configuration:
            self.configure(**configuration)

    @classmethod
    def create(cls, collection: str, config: StoreConfig, **configuration: Any) -> CachedStore:
        """Build a store with the file-based local and HTTP remote backends.

        Args:
            collection: Collection name
            config: Store configuration
            **configuration: Extra options applied via ``configure``
        """
        if config.log_format == "json":
            configure_structured_logging(config.log_level)
        local = FileLocalBackend(collection, config.local_path)
        remote = HttpRemoteBackend(
            collection,
            api_url=config.api_url,
            app_key=config.app_key,
            app_secret=config.app_secret,
            request_timeout=config.request_timeout,
        )
        options = DEFAULT_OPTIONS.merge({"policy": config.policy})
        store = cls(collection, local, remote, options=options)
        if config.store_options:
            store.configure(store=config.store_options)
        if configuration:
            store.configure(**configuration)
        return store

    def configure(self, **options: Any) -> None:
        """Update this store's default options.

        Args:
            policy: Cache policy (CachePolicy or its string value)
            store: Backend sub-options; also become the remote backend's defaults
            success: Default success callback
            error: Default error callback
            complete: Default complete callback

        Raises:
            ConfigurationError: If an option or policy is not recognized
        """
        self.options = merge_options(self.options, options)
        if options.get("store") is not None:
            self.remote.configure(self.options.store)
        self._log.debug(
            f"Configured store (policy={self.options.policy.value})",
            extra={"policy": self.options.policy.value},
        )

    # Reads

    async def aggregate(self, aggregation: Mapping[str, Any], **options: Any) -> Outcome:
        """Aggregate objects according to the cache policy."""
        return await self._read(ReadOperation.AGGREGATE, aggregation, options)

    async def query(self, id: str, **options: Any) -> Outcome:
        """Fetch one object by id according to the cache policy."""
        return await self._read(ReadOperation.QUERY, id, options)

    async def query_with_query(self, query: Mapping[str, Any], **options: Any) -> Outcome:
        """Fetch the objects matching a query according to the cache policy."""
        return await self._read(ReadOperation.QUERY_WITH_QUERY, query, options)

    # Writes

    async def save(self, obj: Mapping[str, Any], **options: Any) -> Outcome:
        """Save an object to the remote store and mirror it locally."""
        return await self._write(WriteOperation.SAVE, obj, options)

    async def remove(self, obj: Any, **options: Any) -> Outcome:
        """Remove an object from the remote store and invalidate its cache entry."""
        return await self._write(WriteOperation.REMOVE, obj, options)

    async def remove_with_query(self, query: Mapping[str, Any], **options: Any) -> Outcome:
        """Remove matching objects remotely and invalidate the cached query result."""
        return await self._write(WriteOperation.REMOVE_WITH_QUERY, query, options)

    # Session pass-through

    async def login(self, credentials: Mapping[str, Any], **options: Any) -> Outcome:
        """Log in through the remote store; bypasses the cache entirely."""
        effective = self._options(options)
        return self._notify(
            await self._call_remote(self.remote.login(credentials, effective.store)), effective
        )

    async def logout(self, **options: Any) -> Outcome:
        """Log out through the remote store; bypasses the cache entirely."""
        effective = self._options(options)
        return self._notify(await self._call_remote(self.remote.logout(effective.store)), effective)

    # Lifecycle

    @property
    def pending_maintenance(self) -> int:
        """Number of background maintenance tasks still running."""
        return self._scheduler.pending

    async def wait_settled(self) -> None:
        """Wait until all background maintenance has settled."""
        await self._scheduler.wait()

    async def close(self) -> None:
        """Wait for background maintenance, then close both backends."""
        await self.wait_settled()
        await self.local.close()
        await self.remote.close()

    async def __aenter__(self) -> CachedStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # Dispatch

    def _options(self, overrides: Mapping[str, Any]) -> StoreOptions:
        return merge_options(self.options, overrides)

    async def _read(self, operation: ReadOperation, arg: Any, overrides: Mapping[str, Any]) -> Outcome:
        options = self._options(overrides)
        primary: StoreBackend
        secondary: StoreBackend
        if should_call_network_first(options.policy):
            primary, secondary = self.remote, self.local
        else:
            primary, secondary = self.local, self.remote
        log = self._log.bind(operation=operation.value, policy=options.policy.value)
        log.debug(f"{operation.value} via {primary.name} first (policy={options.policy.value})")
        return await self._reader.run(operation, arg, options, primary, secondary)

    async def _write(self, operation: WriteOperation, arg: Any, overrides: Mapping[str, Any]) -> Outcome:
        options = self._options(overrides)
        log = self._log.bind(operation=operation.value, policy=options.policy.value)
        log.debug(f"{operation.value} via {self.remote.name} (policy={options.policy.value})")
        return await self._writer.run(operation, arg, options)

    async def _call_remote(self, call: Any) -> Outcome:
        info = info_for(self.remote)
        try:
            return Success(await call, info)
        except Exception as e:
            self._log.debug(f"Remote session call failed: {e}", extra=provenance(info))
            return Failure(e, info)

    @staticmethod
    def _notify(outcome: Outcome, options: StoreOptions) -> Outcome:
        try:
            match outcome:
                case Success(response=response, info=info):
                    options.success(response, info)
                case Failure(error=error, info=info):
                    options.error(error, info)
        finally:
            options.complete()
        return outcome


