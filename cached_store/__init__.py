"""
Cached Store

Policy-driven orchestration of reads and writes across a durable local
store and a remote network store.

Provides:
- Five cache policies (nocache, cacheonly, cachefirst, networkfirst, both)
- Fallback and dual reads with background cache refresh
- Remote-first writes mirrored into the local store
- A single success/error/complete callback contract per call

Usage:

    >>> from cached_store import CachedStore, CachePolicy, StoreConfig
    >>> config = StoreConfig.from_environment()
    >>> async with CachedStore.create("books", config, policy=CachePolicy.CACHE_FIRST) as books:
    ...     outcome = await books.query("book-1", success=lambda book, info: print(book))
    ...     await books.save({"_id": "book-2", "title": "Dune"})

Backends:

    # Durable JSON-file local store
    from cached_store.backends import FileLocalBackend

    # HTTP remote store
    from cached_store.backends import HttpRemoteBackend
"""

from .backends import (
    FileLocalBackend,
    HttpRemoteBackend,
    LocalBackend,
    RemoteBackend,
    StoreBackend,
)
from .config import StoreConfig
from .directives import CacheDirective, derive_cache_directive

# Exceptions
from .exceptions import (
    BackendError,
    CachedStoreError,
    ConfigurationError,
    EntityNotFoundError,
    RemoteRequestError,
    StorageConnectionError,
    StorageIOError,
)
from .logging_utils import configure_structured_logging
from .operations import Failure, Outcome, ReadOperation, ResponseInfo, Success, WriteOperation
from .options import StoreOptions
from .policy import CachePolicy, PolicyFlags, resolve_policy
from .store import CachedStore

__all__ = [
    # Core
    "CachedStore",
    "CachePolicy",
    "PolicyFlags",
    "resolve_policy",
    "StoreOptions",
    "StoreConfig",
    # Outcomes
    "Success",
    "Failure",
    "Outcome",
    "ResponseInfo",
    "ReadOperation",
    "WriteOperation",
    "CacheDirective",
    "derive_cache_directive",
    # Backends
    "StoreBackend",
    "LocalBackend",
    "RemoteBackend",
    "FileLocalBackend",
    "HttpRemoteBackend",
    # Logging
    "configure_structured_logging",
    # Exceptions
    "CachedStoreError",
    "ConfigurationError",
    "BackendError",
    "EntityNotFoundError",
    "RemoteRequestError",
    "StorageConnectionError",
    "StorageIOError",
]

__version__ = "0.1.0"
