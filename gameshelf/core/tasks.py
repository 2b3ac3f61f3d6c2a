"""Background task tracking for imports started with ``background=true``.

Bare asyncio.create_task() calls can be garbage collected mid-flight and fail
silently; TaskManager keeps a strong reference to every task, logs failures,
and lets the app cancel whatever is still running at shutdown.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class TaskManager:
    """
    Manage background tasks with error handling and tracking.

    Usage:
        task_manager = TaskManager.get_instance()
        task_manager.create_task(run_import(...), name=f"import-job-{job_id}")

        # On shutdown
        await task_manager.cancel_all()
    """

    _instance: "TaskManager | None" = None

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._named_tasks: dict[str, asyncio.Task] = {}

    @classmethod
    def get_instance(cls) -> "TaskManager":
        """Get the singleton TaskManager instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None

    def create_task(
        self,
        coro: Awaitable[Any],
        name: str,
        on_error: Callable[[Exception], Awaitable[None]] | None = None,
    ) -> asyncio.Task:
        """
        Create a tracked background task.

        Args:
            coro: The coroutine to run
            name: Name for logging and lookup
            on_error: Optional async callback invoked if the task raises
        """

        async def wrapped_coro():
            try:
                logger.debug(f"Starting background task: {name}")
                result = await coro
                logger.debug(f"Background task completed: {name}")
                return result
            except asyncio.CancelledError:
                logger.info(f"Background task cancelled: {name}")
                raise
            except Exception as e:
                logger.error(f"Background task failed: {name} - {type(e).__name__}: {e}")
                if on_error:
                    try:
                        await on_error(e)
                    except Exception as handler_error:
                        logger.error(f"Error handler failed for {name}: {handler_error}")
                raise

        task = asyncio.create_task(wrapped_coro(), name=name)
        self._tasks.add(task)
        self._named_tasks[name] = task
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        name = task.get_name()
        if self._named_tasks.get(name) is task:
            del self._named_tasks[name]
        # Retrieve the exception so asyncio doesn't log "never retrieved"
        if not task.cancelled():
            task.exception()

    def get_task(self, name: str) -> asyncio.Task | None:
        """Get a running task by name."""
        return self._named_tasks.get(name)

    def get_running_tasks(self) -> list[asyncio.Task]:
        """Get all currently running (non-done) tasks."""
        return [t for t in self._tasks if not t.done()]

    async def cancel_all(self, timeout: float = 5.0) -> dict:
        """
        Cancel all tracked tasks and wait for them to finish.

        Returns:
            Counts of cancelled and timed-out tasks
        """
        running = self.get_running_tasks()
        if not running:
            return {"cancelled": 0, "timed_out": 0}

        logger.info(f"Cancelling {len(running)} background tasks...")
        for task in running:
            task.cancel()

        done, pending = await asyncio.wait(running, timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} tasks did not finish within {timeout}s timeout")

        return {"cancelled": len(done), "timed_out": len(pending)}
