"""
Cache update directives.

A directive describes how the local store must change to mirror a network
response: which read slot to touch, under which key, and with which value.
A ``None`` value invalidates the slot.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .logging_utils import provenance
from .operations import ReadOperation, WriteOperation, info_for

if TYPE_CHECKING:
    from .backends.base import LocalBackend

logger = logging.getLogger(__name__)

ID_FIELD = "_id"

# Responses from this collection carry credentials and are never cached.
USER_COLLECTION = "user"


@dataclass(frozen=True)
class CacheDirective:
    """Instruction for mutating the local store."""

    operation: ReadOperation
    key: Any
    value: Any = None

    @property
    def is_invalidation(self) -> bool:
        return self.value is None


def entity_id(obj: Any) -> Any:
    """Return the identity of an entity, or the argument itself if it is an id."""
    if isinstance(obj, Mapping):
        return obj.get(ID_FIELD)
    return obj


def derive_cache_directive(
    operation: WriteOperation,
    arg: Any,
    response: Any,
    collection: str,
) -> CacheDirective | None:
    """Derive the local-store change that mirrors a successful remote write.

    Args:
        operation: The write that succeeded
        arg: The write argument (entity, id, or query)
        response: The remote response
        collection: Collection the write targeted

    Returns:
        The directive, or None if the local store must not change
    """
    match operation:
        case WriteOperation.REMOVE:
            key = entity_id(arg)
            if key is None:
                return None
            return CacheDirective(ReadOperation.QUERY, key)
        case WriteOperation.REMOVE_WITH_QUERY:
            return CacheDirective(ReadOperation.QUERY_WITH_QUERY, arg)
        case WriteOperation.SAVE:
            if response is None or collection == USER_COLLECTION:
                return None
            key = entity_id(response)
            if key is None:
                return None
            return CacheDirective(ReadOperation.QUERY, key, response)
    return None


async def apply_directive(local: LocalBackend, directive: CacheDirective) -> None:
    """Apply a directive to the local store. Failures are logged, never raised."""
    context = provenance(info_for(local), directive.operation)
    try:
        await local.put(directive.operation, directive.key, directive.value)
    except Exception as e:
        logger.warning(
            f"Cache maintenance failed for {directive.operation.value} "
            f"{directive.key!r}: {e}",
            extra=context,
        )
    else:
        action = "invalidated" if directive.is_invalidation else "updated"
        logger.debug(
            f"Cache {action}: {directive.operation.value} {directive.key!r}",
            extra=context,
        )
