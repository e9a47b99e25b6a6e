"""
Store backends.

Provides the uniform backend interface plus the two concrete stores:
a durable local JSON store and an HTTP remote store.

Example:
    >>> from cached_store.backends import FileLocalBackend, HttpRemoteBackend
    >>> local = FileLocalBackend("books", base_path="/tmp/cache")
    >>> remote = HttpRemoteBackend("books", api_url="https://api.example.com", app_key="kid_1")
"""

from .base import LocalBackend, RemoteBackend, StoreBackend
from .local import FileLocalBackend
from .remote import HttpRemoteBackend

__all__ = [
    # Interfaces
    "StoreBackend",
    "LocalBackend",
    "RemoteBackend",
    # Implementations
    "FileLocalBackend",
    "HttpRemoteBackend",
]
