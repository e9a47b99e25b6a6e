"""
Read orchestration across the local and remote stores.

Flow for one read:
1. Ask the primary store
2. On success, notify the caller; under dual-read policies, ask the
   secondary store in the background afterwards
3. On failure, fall back to the secondary store if the policy allows it,
   otherwise notify the caller of the error
4. Network responses refresh the local store in the background when the
   policy allows cache updates; completion waits for that refresh
"""

from __future__ import annotations

import logging
from collections.abc import Coroutine
from typing import Any

from .backends.base import LocalBackend, StoreBackend
from .directives import CacheDirective, apply_directive
from .logging_utils import provenance
from .maintenance import MaintenanceScheduler
from .operations import Failure, Outcome, ReadOperation, Success, invoke
from .options import StoreOptions
from .policy import PolicyFlags, resolve_policy

logger = logging.getLogger(__name__)


class ReadOrchestrator:
    """Drives one read through primary, optional secondary, and cache refresh."""

    def __init__(self, local: LocalBackend, scheduler: MaintenanceScheduler) -> None:
        self._local = local
        self._scheduler = scheduler

    async def run(
        self,
        operation: ReadOperation,
        arg: Any,
        options: StoreOptions,
        primary: StoreBackend,
        secondary: StoreBackend,
    ) -> Outcome:
        """Perform a read and return the outcome delivered to the caller."""
        flags = resolve_policy(options.policy)
        outcome = await invoke(primary, operation, arg, options.store)
        follow_up = None

        # A raising caller callback still gets its completion.
        try:
            match outcome:
                case Failure(error=error) if flags.allow_fallback:
                    logger.debug(
                        f"{primary.name} {operation.value} failed ({error}), "
                        f"falling back to {secondary.name}",
                        extra=provenance(outcome.info, operation),
                    )
                    outcome = await invoke(secondary, operation, arg, options.store)
                    follow_up = self._deliver(operation, arg, outcome, options, flags)
                case Success() if flags.allow_both:
                    options.success(outcome.response, outcome.info)
                    follow_up = self._second_pass(operation, arg, options, flags, secondary)
                case _:
                    follow_up = self._deliver(operation, arg, outcome, options, flags)
        finally:
            self._scheduler.settle(follow_up, options.complete)
        return outcome

    def _deliver(
        self,
        operation: ReadOperation,
        arg: Any,
        outcome: Outcome,
        options: StoreOptions,
        flags: PolicyFlags,
    ) -> Coroutine[Any, Any, None] | None:
        """Notify the caller of a final outcome and return any cache refresh."""
        match outcome:
            case Success(response=response, info=info):
                options.success(response, info)
                return self._refresh(operation, arg, outcome, flags)
            case Failure(error=error, info=info):
                options.error(error, info)
        return None

    async def _second_pass(
        self,
        operation: ReadOperation,
        arg: Any,
        options: StoreOptions,
        flags: PolicyFlags,
        secondary: StoreBackend,
    ) -> None:
        """Read the secondary store after the primary already succeeded."""
        outcome = await invoke(secondary, operation, arg, options.store)

        match outcome:
            case Failure(error=error):
                # The caller already has a response.
                logger.debug(
                    f"Suppressed {secondary.name} {operation.value} failure: {error}",
                    extra=provenance(outcome.info, operation),
                )
            case Success(response=response, info=info):
                if flags.deliver_both:
                    options.success(response, info)
                refresh = self._refresh(operation, arg, outcome, flags)
                if refresh is not None:
                    await refresh

    def _refresh(
        self,
        operation: ReadOperation,
        arg: Any,
        outcome: Success,
        flags: PolicyFlags,
    ) -> Coroutine[Any, Any, None] | None:
        """Return a cache refresh for a network response, or None."""
        if not (outcome.info.network and flags.allow_cache_update):
            return None
        directive = CacheDirective(operation, arg, outcome.response)
        return apply_directive(self._local, directive)
