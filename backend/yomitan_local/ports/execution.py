"""
Execution context interface.

The edge platform hands each request a context for work that may outlive
the response. Locally the same contract is honoured by scheduling the
work in the background.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Union

DeferredTask = Union[Awaitable, Callable[[], object]]


class ExecutionContext(ABC):
    """Deferred-work contract passed to the router with every request."""

    @abstractmethod
    def defer_until_settled(self, task: DeferredTask) -> None:
        """
        Schedule background work that the response does not wait for.

        Args:
            task: Coroutine or awaitable to run, or a plain callable that is
                run in a worker thread

        A failing task is logged and never propagated to the caller.
        """
        pass

    @abstractmethod
    def suppress_fatal_propagation(self) -> None:
        """Ask the host not to fail the request on an uncaught exception."""
        pass

    # Edge platform method names
    def wait_until(self, task: DeferredTask) -> None:
        self.defer_until_settled(task)

    def pass_through_on_exception(self) -> None:
        self.suppress_fatal_propagation()


class TaskStatus(str, Enum):
    """Deferred task execution status."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
