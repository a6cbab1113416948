"""Registry for fire-and-forget asyncio tasks, so their failures are logged instead of lost."""

import asyncio
from typing import TYPE_CHECKING

from learnova.utils.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from typing import Any
else:
    Coroutine = object
    Any = object

logger = get_logger(__name__)


class BackgroundTasks:
    """Holds a reference to every scheduled task until it finishes."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def schedule(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        """Run a coroutine in the background, exceptions are logged, never raised."""
        task = asyncio.create_task(self._guard(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _guard(coro: Coroutine[Any, Any, None], name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.info("Background task %s cancelled", name)
            raise
        except Exception as e:  # This is a background task so it won't crash the app
            logger.exception("Background task %s failed: %s", name, type(e).__name__)

    async def drain(self, timeout: float = 10) -> None:
        """Wait for pending tasks, cancel whatever is still running after the timeout."""
        if not self._tasks:
            return

        logger.info("Waiting for %d background task(s)", len(self._tasks))
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
