"""
Local file-based store.

Keeps one JSON document per collection on disk, holding three cache slots:
single objects by id, query results by canonical query, and aggregation
results by canonical aggregation spec.

Directory structure:
{base_path}/
  {collection}.json
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..directives import ID_FIELD, entity_id
from ..exceptions import EntityNotFoundError
from ..operations import ReadOperation
from .base import LocalBackend
from .file_ops import canonical_key, discard_document, load_document, store_document

logger = logging.getLogger(__name__)

_OBJECTS = "objects"
_QUERIES = "queries"
_AGGREGATIONS = "aggregations"


def _empty() -> dict[str, dict[str, Any]]:
    return {_OBJECTS: {}, _QUERIES: {}, _AGGREGATIONS: {}}


class FileLocalBackend(LocalBackend):
    """Durable local store backed by a JSON file per collection.

    Mutations are serialized through a lock and persisted atomically, so
    concurrent operations on the same store see a consistent document.
    """

    def __init__(self, collection: str, base_path: str | Path | None = None) -> None:
        """Initialize local store.

        Args:
            collection: Collection name
            base_path: Directory for store files (default: ~/.cached_store/data)
        """
        super().__init__()
        self.collection = collection
        if base_path:
            self.base_path = Path(base_path)
        else:
            self.base_path = Path.home() / ".cached_store" / "data"

        self._data: dict[str, dict[str, Any]] | None = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        """Path of this collection's store file."""
        return self.base_path / f"{self.collection}.json"

    # Reads

    async def aggregate(self, aggregation: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        return await self._lookup(_AGGREGATIONS, canonical_key(aggregation), aggregation, "aggregate")

    async def query(self, id: str, options: Mapping[str, Any]) -> Any:
        return await self._lookup(_OBJECTS, str(id), id, "query")

    async def query_with_query(self, query: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        return await self._lookup(_QUERIES, canonical_key(query), query, "query_with_query")

    # Writes

    async def save(self, obj: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        stored = copy.deepcopy(dict(obj))
        stored.setdefault(ID_FIELD, uuid.uuid4().hex)
        async with self._lock:
            draft = await self._draft()
            draft[_OBJECTS][str(stored[ID_FIELD])] = stored
            await self._commit(draft)
        return copy.deepcopy(stored)

    async def remove(self, obj: Any, options: Mapping[str, Any]) -> Any:
        key = entity_id(obj)
        async with self._lock:
            draft = await self._draft()
            if key is None or draft[_OBJECTS].pop(str(key), None) is None:
                raise EntityNotFoundError(self.collection, key, "remove")
            await self._commit(draft)
        return None

    async def remove_with_query(self, query: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        async with self._lock:
            draft = await self._draft()
            cached = draft[_QUERIES].pop(canonical_key(query), None)
            if cached is None:
                raise EntityNotFoundError(self.collection, query, "remove_with_query")
            count = 0
            for item in cached if isinstance(cached, list) else []:
                if not isinstance(item, Mapping):
                    continue
                if draft[_OBJECTS].pop(str(entity_id(item)), None) is not None:
                    count += 1
            await self._commit(draft)
        return {"count": count}

    # Cache maintenance

    async def put(self, operation: ReadOperation, key: Any, value: Any) -> None:
        async with self._lock:
            draft = await self._draft()
            match operation:
                case ReadOperation.QUERY:
                    self._set(draft[_OBJECTS], str(key), value)
                case ReadOperation.QUERY_WITH_QUERY:
                    self._set(draft[_QUERIES], canonical_key(key), value)
                    # Results also warm the single-object slot.
                    for item in value if isinstance(value, list) else []:
                        item_id = entity_id(item) if isinstance(item, Mapping) else None
                        if item_id is not None:
                            draft[_OBJECTS][str(item_id)] = copy.deepcopy(item)
                case ReadOperation.AGGREGATE:
                    self._set(draft[_AGGREGATIONS], canonical_key(key), value)
            await self._commit(draft)

    async def clear(self) -> None:
        """Drop every cached entry for this collection."""
        async with self._lock:
            await discard_document(self.path)
            self._data = _empty()
        logger.debug(f"Cleared local store for {self.collection}")

    # Internals

    @staticmethod
    def _set(slot: dict[str, Any], key: str, value: Any) -> None:
        if value is None:
            slot.pop(key, None)
        else:
            slot[key] = copy.deepcopy(value)

    async def _lookup(self, slot: str, key: str, original: Any, operation: str) -> Any:
        async with self._lock:
            data = await self._load()
            if key not in data[slot]:
                raise EntityNotFoundError(self.collection, original, operation)
            return copy.deepcopy(data[slot][key])

    async def _load(self) -> dict[str, dict[str, Any]]:
        if self._data is None:
            stored = await load_document(self.path)
            data = _empty()
            if stored:
                for slot in data:
                    data[slot].update(stored.get(slot, {}))
            self._data = data
        return self._data

    async def _draft(self) -> dict[str, dict[str, Any]]:
        """Working copy of the document; changes land only through _commit."""
        return copy.deepcopy(await self._load())

    async def _commit(self, draft: dict[str, dict[str, Any]]) -> None:
        # The in-memory document only advances once the disk write succeeded.
        await store_document(self.path, draft)
        self._data = draft
