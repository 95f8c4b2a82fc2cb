"""Background task tracking with cooperative cancellation.

Every long-running task (WebSocket connections, periodic jobs) is spawned
through the `TaskManager`. Each task receives a child `CancellationToken` of
the manager's root token and is expected to watch it and exit promptly once it
fires. On shutdown the manager stops accepting tasks, cancels the root token,
and waits for every tracked task to finish.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Callable, Coroutine
from typing import Any

import structlog

from cs2kz.errors import TaskManagerClosedError

logger = structlog.get_logger(__name__)

type TaskFactory[T] = Callable[[CancellationToken], Coroutine[Any, Any, T]]


class CancellationToken:
    """A cooperative cancellation signal.

    Cancelling a token cancels all of its children, but never its parent.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        for child in list(self._children):
            child.cancel()
        self._children.clear()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()

    def child_token(self) -> CancellationToken:
        child = CancellationToken()
        if self.is_cancelled:
            child.cancel()
        else:
            self._children.add(child)
        return child

    def release(self, child: CancellationToken) -> None:
        """Stop propagating cancellation to `child`."""
        self._children.discard(child)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


class TaskManager:
    """Process-wide registry of background tasks."""

    def __init__(self) -> None:
        self._root = CancellationToken()
        self._tasks: dict[asyncio.Task[Any], CancellationToken] = {}
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._tasks)

    def cancellation_token(self) -> CancellationToken:
        return self._root.child_token()

    def spawn[T](self, name: str, factory: TaskFactory[T]) -> asyncio.Task[T]:
        """Start `factory(token)` as a tracked task.

        Raises `TaskManagerClosedError` once shutdown has begun; no task is created then.
        """
        if self._closed:
            raise TaskManagerClosedError

        token = self._root.child_token()
        task = asyncio.create_task(factory(token), name=name)
        self._tasks[task] = token
        task.add_done_callback(self._on_task_done)
        logger.debug("task_spawned", task=name, active=len(self._tasks))
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        token = self._tasks.pop(task, None)
        if token is not None:
            self._root.release(token)
        if task.cancelled():
            logger.debug("task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("task_failed", task=task.get_name(), exc_info=exc)
        else:
            logger.debug("task_finished", task=task.get_name())

    async def shutdown(self) -> None:
        """Stop accepting tasks, cancel all running ones, and wait for them to exit."""
        self._closed = True
        logger.debug("task_manager_closed")

        self._root.cancel()
        logger.debug("tasks_cancelled", active=len(self._tasks))

        if self._tasks:
            await asyncio.wait(list(self._tasks))
        logger.info("all_tasks_exited")
