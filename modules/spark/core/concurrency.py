"""
Concurrency Infrastructure.

Single-writer execution context and semaphore management for the sync layer.

SerialExecutor:
    Every mutation of the local item store happens in one owner context: the
    event loop thread that first used the executor. Calls made on that thread
    run inline, so optimistic mutations are visible as soon as the call
    returns. Calls from any other thread (e.g. a vendor SDK's listener thread)
    are queued onto the loop with call_soon_threadsafe and run in FIFO order.
    Remote operations run as background tasks on the same loop; their
    completion handlers therefore re-enter the owner context by construction.

Semaphores:
    Created per-dependency to limit concurrent access to the remote store.
    Sizing is configured in config/settings/sync.yaml.

Usage:
    from modules.spark.core.concurrency import SerialExecutor, get_semaphore

    executor = SerialExecutor()
    executor.call(store.replace_all, items)      # inline or marshalled
    executor.spawn(remote_create(item))          # tracked background task
    await executor.drain()                       # wait for in-flight work

    async with get_semaphore("remote_store"):
        await remote.create(...)
"""

import asyncio
import contextvars
import threading
from collections.abc import Callable, Coroutine
from typing import Any

from modules.spark.core.logging import get_logger

logger = get_logger(__name__)

_semaphores: dict[str, asyncio.Semaphore] = {}
_semaphore_capacities: dict[str, int] = {}


class SerialExecutor:
    """Owner context for all local store mutations.

    The executor binds lazily to the running event loop on first use.
    """

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread_id: int | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def bound(self) -> bool:
        return self._loop is not None

    @property
    def pending_count(self) -> int:
        """Number of background tasks still running."""
        return len(self._tasks)

    def bind(self) -> asyncio.AbstractEventLoop:
        """Bind to the running loop. Must be called from the owner thread.

        Raises:
            RuntimeError: If no event loop is running in this thread
        """
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
            self._thread_id = threading.get_ident()
            logger.debug("Serial executor bound", extra={"thread_id": self._thread_id})
        return self._loop

    def in_owner_context(self) -> bool:
        return self._thread_id is not None and threading.get_ident() == self._thread_id

    def ensure_owner(self) -> None:
        """Bind if needed and reject calls from any thread but the owner's.

        Raises:
            RuntimeError: If called from a foreign thread
        """
        self.bind()
        if not self.in_owner_context():
            raise RuntimeError("Local store may only be mutated from its owning event loop")

    def call(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run ``fn(*args)`` in the owner context.

        Inline when already there, otherwise queued onto the owner loop with
        the caller's contextvars (structlog bindings survive the hop).

        Raises:
            RuntimeError: If called off-loop before the executor was bound
        """
        if self.in_owner_context():
            fn(*args)
            return
        if self._loop is None:
            raise RuntimeError("SerialExecutor is not bound to an event loop yet")
        self._loop.call_soon_threadsafe(fn, *args, context=contextvars.copy_context())

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
        """Start a tracked background task on the owner loop."""
        loop = self.bind()
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed",
                extra={"task": task.get_name(), "error": repr(exc)},
            )

    async def drain(self) -> None:
        """Wait until every background task, including follow-ups, finished."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))


def get_semaphore(name: str) -> asyncio.Semaphore:
    """Get a named semaphore for concurrency-limiting remote calls.

    Semaphores are created lazily. The capacity is read from sync.yaml
    under `concurrency.semaphores.<name>`. If the name is not configured,
    defaults to 20.
    """
    if name not in _semaphores:
        from modules.spark.core.config import get_app_config
        semaphore_config = get_app_config().sync.concurrency.semaphores
        capacity = getattr(semaphore_config, name, 20)
        _semaphores[name] = asyncio.Semaphore(capacity)
        _semaphore_capacities[name] = capacity
        logger.debug("Semaphore created", extra={"name": name, "capacity": capacity})
    return _semaphores[name]


def reset_semaphores() -> None:
    """Drop all named semaphores (they are bound to the loop that used them)."""
    _semaphores.clear()
    _semaphore_capacities.clear()
    logger.debug("Semaphores cleared")
