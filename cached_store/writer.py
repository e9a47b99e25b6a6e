"""
Write orchestration.

Writes always go to the remote store. A successful write is mirrored into
the local store in the background (update or invalidation) when the policy
allows cache updates; writes are never served from the local store.
"""

from __future__ import annotations

import logging
from typing import Any

from .backends.base import LocalBackend, RemoteBackend
from .directives import apply_directive, derive_cache_directive
from .logging_utils import provenance
from .maintenance import MaintenanceScheduler
from .operations import Failure, Outcome, Success, WriteOperation, invoke
from .options import StoreOptions
from .policy import should_update_cache

logger = logging.getLogger(__name__)


class WriteOrchestrator:
    """Performs remote writes and keeps the local store consistent with them."""

    def __init__(
        self,
        collection: str,
        local: LocalBackend,
        remote: RemoteBackend,
        scheduler: MaintenanceScheduler,
    ) -> None:
        self.collection = collection
        self._local = local
        self._remote = remote
        self._scheduler = scheduler

    async def run(self, operation: WriteOperation, arg: Any, options: StoreOptions) -> Outcome:
        """Perform a write and return the outcome delivered to the caller."""
        outcome = await invoke(self._remote, operation, arg, options.store)
        follow_up = None

        # A raising caller callback still gets its completion.
        try:
            match outcome:
                case Success(response=response, info=info):
                    options.success(response, info)
                    if should_update_cache(options.policy):
                        directive = derive_cache_directive(
                            operation, arg, response, collection=self.collection
                        )
                        if directive is not None:
                            follow_up = apply_directive(self._local, directive)
                        else:
                            logger.debug(
                                f"No cache update for {self.collection} {operation.value}",
                                extra=provenance(info, operation),
                            )
                case Failure(error=error, info=info):
                    options.error(error, info)
        finally:
            self._scheduler.settle(follow_up, options.complete)
        return outcome
