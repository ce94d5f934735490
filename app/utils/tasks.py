"""Supervision for fire-and-forget background tasks."""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Runs detached coroutines and logs their failures at the task boundary.

    Holds strong references to running tasks (the event loop only keeps weak
    ones) so background work is not garbage-collected mid-flight. Failures
    never propagate to whoever spawned the task.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Schedule a coroutine on the running loop.

        Args:
            coro: Coroutine to run
            name: Task name used in log messages

        Returns:
            The created task
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug(f"Background task {task.get_name()} cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed: {error}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for running tasks, including tasks they spawn.

        Args:
            timeout: Give up (and cancel what is left) after this many seconds
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        while self._tasks:
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            _, pending = await asyncio.wait(set(self._tasks), timeout=remaining)
            if pending and deadline is not None and loop.time() >= deadline:
                logger.warning(f"Cancelling {len(pending)} unfinished background tasks")
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                return
            # Let done callbacks run before re-checking the set
            await asyncio.sleep(0)
