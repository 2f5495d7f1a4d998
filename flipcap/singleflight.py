"""Collapse concurrent calls for the same work into one task."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Single-flight coalescing for one resource.

    The first caller of :meth:`do` starts ``fn`` as a task; callers arriving
    before that task finishes await the same task. The handle is released as
    soon as the task completes (result, exception or cancellation) so the next
    caller starts fresh work. Waiters are shielded: cancelling one waiter does
    not cancel the shared task.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[T] | None = None
        self.started = 0
        self.joined = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def do(self, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._task
        if task is None or task.done():
            task = asyncio.ensure_future(fn())
            self._task = task
            self.started += 1
            task.add_done_callback(self._release)
        else:
            self.joined += 1
        return await asyncio.shield(task)

    def _release(self, task: "asyncio.Future[T]") -> None:
        if self._task is task:
            self._task = None


__all__ = ["SingleFlight"]
