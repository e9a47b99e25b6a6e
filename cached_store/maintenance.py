"""
Background cache maintenance.

Work that follows a caller-visible success or error (secondary reads and
local cache updates) runs as tracked asyncio tasks. The completion callback
fires once that work settles, or immediately when there is none.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Runs follow-up work in the background and fires completion callbacks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of background tasks still running."""
        return len(self._tasks)

    def settle(
        self,
        follow_up: Coroutine[Any, Any, None] | None,
        complete: Callable[[], None],
    ) -> None:
        """Fire ``complete`` after ``follow_up`` finishes.

        With no follow-up work, ``complete`` is called before returning.
        """
        if follow_up is None:
            complete()
            return

        task = asyncio.create_task(self._run(follow_up, complete))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait(self) -> None:
        """Wait until all background work, including work it spawns, settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(
        self,
        follow_up: Coroutine[Any, Any, None],
        complete: Callable[[], None],
    ) -> None:
        try:
            await follow_up
        except Exception:
            logger.exception("Background cache maintenance raised")
        finally:
            try:
                complete()
            except Exception:
                logger.exception("Complete callback raised")
