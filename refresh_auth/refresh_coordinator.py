"""
Single-flight refresh: at most one refresh call is outstanding per session. Callers arriving
while it runs await the same task; the slot is cleared as the call settles, so the next
caller after settlement starts a fresh call.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


def _retrieve_result(task: asyncio.Task) -> None:
    # Keeps asyncio from warning when every waiter was cancelled before the flight failed
    if not task.cancelled():
        task.exception()


class RefreshCoordinator:
    def __init__(self) -> None:
        self._inflight: asyncio.Task | None = None
        self.dispatched = 0

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def run(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Join the outstanding call, or start one with factory(). Check and publish happen
        with no await in between. Waiters are shielded: cancelling one does not cancel the call.
        """
        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._settle(factory))
            task.add_done_callback(_retrieve_result)
            self._inflight = task
            self.dispatched += 1
            logger.debug("Refresh dispatched (#%d)", self.dispatched)
        else:
            logger.debug("Joining in-flight refresh")
        return await asyncio.shield(task)

    async def _settle(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await factory()
        finally:
            self._inflight = None
