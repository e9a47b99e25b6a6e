"""
JSON document helpers for the local store.

A collection lives in a single JSON document. Documents are encoded fully
in memory before anything touches the disk, then written to a sibling temp
file and renamed over the target, so a failed write leaves the previous
document intact.
"""

import json
import os
import tempfile
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..exceptions import StorageIOError


def encode_document(path: Path, document: Mapping[str, Any]) -> str:
    """Serialize a document, reporting unencodable values as storage errors."""
    try:
        return json.dumps(document, default=_encode_value)
    except (TypeError, ValueError) as e:
        raise StorageIOError("encode", str(path), e) from e


async def load_document(path: Path) -> dict[str, Any] | None:
    """Load a document, or None if it was never written.

    Raises:
        StorageIOError: If the file cannot be read or holds invalid JSON
    """
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StorageIOError("read", str(path), e) from e

    if not content.strip():
        return None
    try:
        document = json.loads(content)
    except json.JSONDecodeError as e:
        raise StorageIOError("decode", str(path), e) from e
    if not isinstance(document, dict):
        raise StorageIOError("decode", str(path))
    return document


async def store_document(path: Path, document: Mapping[str, Any]) -> None:
    """Replace the document at ``path`` atomically.

    Raises:
        StorageIOError: If encoding or any file operation fails
    """
    payload = encode_document(path, document)

    try:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        os.close(fd)
    except OSError as e:
        raise StorageIOError("write", str(path), e) from e

    try:
        async with aiofiles.open(temp_name, "w", encoding="utf-8") as f:
            await f.write(payload)
            await f.flush()
            os.fsync(f.fileno())
        await aiofiles.os.rename(temp_name, path)
    except OSError as e:
        if await aiofiles.os.path.exists(temp_name):
            await aiofiles.os.remove(temp_name)
        raise StorageIOError("write", str(path), e) from e


async def discard_document(path: Path) -> bool:
    """Delete the document at ``path``. Returns False if there was none."""
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageIOError("discard", str(path), e) from e
    return True


def canonical_key(spec: Any) -> str:
    """Stable string key for a query or aggregation spec.

    Equal specs map to the same key regardless of dict ordering.
    """
    return json.dumps(spec, sort_keys=True, separators=(",", ":"), default=_encode_value)


def _encode_value(value: Any) -> Any:
    match value:
        case datetime() | date():
            return value.isoformat()
        case Enum():
            return value.value
        case set() | frozenset() | tuple():
            return list(value)
        case Mapping():
            return dict(value)
    raise TypeError(f"{type(value).__name__} values cannot be stored in the local store")
