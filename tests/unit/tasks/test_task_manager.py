"""Tests for the task manager and cancellation tokens."""

import asyncio
import gc

import pytest

from cs2kz.core.tasks import CancellationToken, TaskManager
from cs2kz.core.websocket.close_reason import CloseReasonKind
from cs2kz.core.websocket.connection import Connection, ConnectionState
from cs2kz.errors import TaskManagerClosedError

HELLO = '{"plugin_version": "1.0.0", "current_map": "kz_checkmate"}'


class TestCancellationToken:
    """Test parent/child cancellation propagation."""

    def test_cancel_cascades_to_children(self):
        """Cancelling a token cancels its whole subtree."""
        parent = CancellationToken()
        child = parent.child_token()
        grandchild = child.child_token()

        parent.cancel()

        assert child.is_cancelled
        assert grandchild.is_cancelled

    def test_child_does_not_cancel_parent(self):
        """Cancelling a child leaves its parent and siblings alone."""
        parent = CancellationToken()
        child = parent.child_token()
        sibling = parent.child_token()

        child.cancel()

        assert not parent.is_cancelled
        assert not sibling.is_cancelled

    def test_child_of_cancelled_token_starts_cancelled(self):
        """A child created after cancellation is born cancelled."""
        parent = CancellationToken()
        parent.cancel()
        assert parent.child_token().is_cancelled

    def test_released_child_is_not_cancelled(self):
        """A released child no longer follows its parent."""
        parent = CancellationToken()
        child = parent.child_token()

        parent.release(child)
        parent.cancel()

        assert not child.is_cancelled

    def test_unreferenced_children_are_dropped(self):
        """The parent does not keep children alive on its own."""
        parent = CancellationToken()
        kept = parent.child_token()
        for _ in range(100):
            parent.child_token()
        gc.collect()

        assert list(parent._children) == [kept]

    @pytest.mark.asyncio
    async def test_wait_returns_once_cancelled(self):
        """wait() blocks until cancel() is called."""
        token = CancellationToken()
        waiter = asyncio.create_task(token.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        token.cancel()

        await asyncio.wait_for(waiter, timeout=1.0)


class TestTaskManager:
    """Test spawning, tracking, and draining tasks."""

    @pytest.mark.asyncio
    async def test_spawn_runs_task(self):
        """Spawned tasks run and their result is returned."""
        manager = TaskManager()

        async def job(token: CancellationToken) -> int:
            return 42

        task = manager.spawn("job", job)

        assert await task == 42
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_tasks_are_tracked_until_done(self):
        """A task counts as active until it finishes."""
        manager = TaskManager()
        release = asyncio.Event()

        async def job(token: CancellationToken) -> None:
            await release.wait()

        task = manager.spawn("job", job)
        assert len(manager) == 1

        release.set()
        await task
        await asyncio.sleep(0)
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_finished_tasks_release_their_tokens(self):
        """Tokens of finished tasks are not retained by the manager."""
        manager = TaskManager()

        async def job(token: CancellationToken) -> None:
            await asyncio.sleep(0)

        await asyncio.gather(*(manager.spawn(f"job-{i}", job) for i in range(1000)))
        await asyncio.sleep(0)

        assert len(manager) == 0
        assert len(manager._root._children) == 0

    @pytest.mark.asyncio
    async def test_discarded_tokens_are_not_retained(self):
        """Tokens handed out and then dropped do not accumulate."""
        manager = TaskManager()
        for _ in range(100):
            manager.cancellation_token()
        gc.collect()

        assert len(manager._root._children) == 0

    @pytest.mark.asyncio
    async def test_shutdown_cancels_and_drains(self):
        """shutdown() cancels every task and waits for its cleanup."""
        manager = TaskManager()
        cleaned_up: list[str] = []

        async def job(token: CancellationToken) -> None:
            await token.wait()
            await asyncio.sleep(0.02)  # cleanup takes a moment
            cleaned_up.append("job")

        manager.spawn("a", job)
        manager.spawn("b", job)
        await asyncio.sleep(0)

        await asyncio.wait_for(manager.shutdown(), timeout=1.0)

        assert cleaned_up == ["job", "job"]
        assert len(manager) == 0
        assert manager.is_closed

    @pytest.mark.asyncio
    async def test_spawn_after_shutdown_fails(self):
        """No task is started once the manager is closed."""
        manager = TaskManager()
        await manager.shutdown()
        started = False

        async def job(token: CancellationToken) -> None:
            nonlocal started
            started = True

        with pytest.raises(TaskManagerClosedError):
            manager.spawn("late", job)
        await asyncio.sleep(0)
        assert not started

    @pytest.mark.asyncio
    async def test_failed_task_does_not_break_shutdown(self):
        """A task that raised does not stop the others from being drained."""
        manager = TaskManager()

        async def broken(token: CancellationToken) -> None:
            raise RuntimeError("boom")

        async def well_behaved(token: CancellationToken) -> None:
            await token.wait()

        failing = manager.spawn("broken", broken)
        manager.spawn("fine", well_behaved)
        await asyncio.sleep(0)

        await asyncio.wait_for(manager.shutdown(), timeout=1.0)

        assert isinstance(failing.exception(), RuntimeError)

    @pytest.mark.asyncio
    async def test_tokens_handed_out_are_cancelled_on_shutdown(self):
        """Tokens from cancellation_token() follow the manager's shutdown."""
        manager = TaskManager()
        token = manager.cancellation_token()

        await manager.shutdown()

        assert token.is_cancelled


class TestShutdownClosesConnections:
    """Test that shutdown closes every open WebSocket connection."""

    @pytest.mark.asyncio
    async def test_all_connections_close_as_cancelled(self, make_transport):
        """Every established connection closes with the shutdown reason before shutdown() returns."""
        manager = TaskManager()
        transports = [make_transport() for _ in range(3)]
        connections = [Connection(transport) for transport in transports]
        for transport in transports:
            transport.push_text(HELLO)
        tasks = [manager.spawn(f"connection-{i}", c.run) for i, c in enumerate(connections)]

        async def all_established() -> None:
            while any(c.state is not ConnectionState.ESTABLISHED for c in connections):
                await asyncio.sleep(0.005)

        await asyncio.wait_for(all_established(), timeout=1.0)

        await asyncio.wait_for(manager.shutdown(), timeout=1.0)

        assert all(task.done() for task in tasks)
        assert [task.result().kind for task in tasks] == [CloseReasonKind.CANCELLED] * 3
        assert [t.closed for t in transports] == [[(1012, "API is shutting down")]] * 3
        assert all(c.state is ConnectionState.CLOSED for c in connections)
        assert len(manager) == 0
