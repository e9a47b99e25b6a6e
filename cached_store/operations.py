"""
Operation tags and backend call outcomes.

Every backend call made by the orchestrators goes through ``invoke``, which
turns a raised exception into a ``Failure`` so the read and write paths can
branch on values instead of nesting callbacks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .logging_utils import provenance

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .backends.base import StoreBackend

logger = logging.getLogger(__name__)


class ReadOperation(Enum):
    """Read operations. The value is the backend method name."""

    AGGREGATE = "aggregate"
    QUERY = "query"
    QUERY_WITH_QUERY = "query_with_query"


class WriteOperation(Enum):
    """Write operations. The value is the backend method name."""

    SAVE = "save"
    REMOVE = "remove"
    REMOVE_WITH_QUERY = "remove_with_query"


Operation = ReadOperation | WriteOperation


@dataclass(frozen=True)
class ResponseInfo:
    """Provenance of a response or error."""

    network: bool
    backend: str


@dataclass(frozen=True)
class Success:
    """A backend call that returned a response."""

    response: Any
    info: ResponseInfo


@dataclass(frozen=True)
class Failure:
    """A backend call that raised."""

    error: Exception
    info: ResponseInfo


Outcome = Success | Failure


def info_for(backend: StoreBackend) -> ResponseInfo:
    """Build the provenance tag for a backend."""
    return ResponseInfo(network=backend.network, backend=backend.name)


async def invoke(
    backend: StoreBackend,
    operation: Operation,
    arg: Any,
    options: Mapping[str, Any],
) -> Outcome:
    """Call ``operation`` on ``backend`` once and capture the outcome."""
    info = info_for(backend)
    method = getattr(backend, operation.value)
    try:
        response = await method(arg, options)
    except Exception as e:
        logger.debug(
            f"{backend.name} {operation.value} failed: {e}",
            extra=provenance(info, operation),
        )
        return Failure(e, info)
    return Success(response, info)
