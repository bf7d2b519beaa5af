"""
In-process execution context.

Deferred work runs as asyncio tasks on the server's event loop (plain
callables in a worker thread). Nothing awaits them on the response path;
failures are logged once and swallowed so they cannot reach a request or
stop the process.
"""
import asyncio
import inspect
import logging
import uuid
from collections import OrderedDict
from typing import Dict, Optional

from yomitan_local.core.errors import DeferredTaskError
from yomitan_local.ports.execution import DeferredTask, ExecutionContext, TaskStatus

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """
    Tracks deferred tasks for the lifetime of the host.

    Holds a reference to every pending task so it is not garbage collected
    mid-flight, and remembers the status of the most recent tasks.
    """

    def __init__(self, max_history: int = 1000):
        """
        Initialize task runner.

        Args:
            max_history: Number of settled task statuses to remember
        """
        self.max_history = max_history
        self._pending: Dict[str, asyncio.Future] = {}
        self._statuses: "OrderedDict[str, TaskStatus]" = OrderedDict()

    def submit(self, task: DeferredTask, task_id: Optional[str] = None) -> str:
        """Schedule a task on the running loop and return its ID."""
        task_id = task_id or str(uuid.uuid4())

        if inspect.isawaitable(task):
            future = asyncio.ensure_future(task)
        elif inspect.iscoroutinefunction(task):
            future = asyncio.ensure_future(task())
        elif callable(task):
            future = asyncio.ensure_future(asyncio.to_thread(task))
        else:
            raise TypeError(f"Cannot defer object of type {type(task).__name__}")

        self._pending[task_id] = future
        self._record(task_id, TaskStatus.RUNNING)
        future.add_done_callback(lambda f: self._settle(task_id, f))
        return task_id

    def _settle(self, task_id: str, future: asyncio.Future) -> None:
        self._pending.pop(task_id, None)

        if future.cancelled():
            self._record(task_id, TaskStatus.CANCELLED)
            return

        exc = future.exception()
        if exc is None:
            self._record(task_id, TaskStatus.COMPLETED)
            return

        error = DeferredTaskError(f"Background task {task_id} failed: {exc}")
        logger.error(error.message, exc_info=(type(exc), exc, exc.__traceback__))
        self._record(task_id, TaskStatus.FAILED)

    def _record(self, task_id: str, status: TaskStatus) -> None:
        self._statuses[task_id] = status
        self._statuses.move_to_end(task_id)
        while len(self._statuses) > self.max_history:
            self._statuses.popitem(last=False)

    def status(self, task_id: str) -> TaskStatus:
        """Get task status."""
        if task_id not in self._statuses:
            raise ValueError(f"Task {task_id} not found")
        return self._statuses[task_id]

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def join(self) -> None:
        """Wait until every task submitted so far has settled."""
        while self._pending:
            await asyncio.wait(list(self._pending.values()))

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Give pending tasks up to timeout seconds, then cancel the rest."""
        if not self._pending:
            return

        logger.info(f"Waiting for {len(self._pending)} background task(s)")
        _, still_pending = await asyncio.wait(list(self._pending.values()), timeout=timeout)
        for future in still_pending:
            future.cancel()
        if still_pending:
            logger.warning(f"Cancelled {len(still_pending)} background task(s) at shutdown")
            await asyncio.gather(*still_pending, return_exceptions=True)


class InlineExecutionContext(ExecutionContext):
    """Per-request execution context handed to the router."""

    def __init__(self, runner: BackgroundTaskRunner):
        self.runner = runner
        self.task_ids = []

    def defer_until_settled(self, task: DeferredTask) -> None:
        self.task_ids.append(self.runner.submit(task))

    def suppress_fatal_propagation(self) -> None:
        # Errors are always rendered as JSON 500 responses locally; nothing to switch
        pass
