"""
In-flight request coalescing for Seaside Beacon

One score request fans out to several beaches that share a grid cell, and
evening traffic often lands inside the same TTL gap. Every caller for a key
awaits the same pending task, so the upstream sees a single request.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable

logger = logging.getLogger(__name__)


class InFlightRegistry:
    """
    Shares one pending outcome among concurrent callers of the same key.

    The underlying task is shielded: cancelling one waiter does not cancel
    the fetch other waiters depend on.
    """

    def __init__(self, name: str = "inflight"):
        self.name = name
        self._pending: Dict[Hashable, asyncio.Task] = {}

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Await the outcome for key, starting factory() only if nothing is pending.

        Args:
            key: Coalescing key
            factory: Zero-arg coroutine function performing the real work

        Returns:
            The shared result (or raises the shared exception)
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda done, k=key: self._release(k, done))
        else:
            logger.debug(f"[InFlightRegistry:{self.name}] Joining pending fetch for {key}")

        return await asyncio.shield(task)

    def _release(self, key: Hashable, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Mark the exception retrieved even if every waiter was cancelled
        if not task.cancelled():
            task.exception()
