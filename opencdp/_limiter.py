"""Bounded-concurrency admission gate.

A ``ConcurrencyLimiter`` lets at most ``capacity`` coroutines run at once.
Further calls wait in a FIFO queue and are admitted one by one as running
calls finish, whether they succeeded or raised. The queue is unbounded.

One limiter is shared by every operation of a client instance. It holds no
lock: its counter and queue are only touched from the event loop thread.

This is an internal module and should not be imported directly by users.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")

DEFAULT_CONCURRENCY = 10
MAX_CONCURRENCY = 30


def resolve_concurrency(requested: int | None) -> int:
    """Return the effective capacity for a requested concurrency ceiling.

    Unset or non-positive values fall back to DEFAULT_CONCURRENCY; values
    above MAX_CONCURRENCY are capped.

    Example:
        >>> resolve_concurrency(50)
        30
        >>> resolve_concurrency(0)
        10
    """
    if requested is None or requested <= 0:
        return DEFAULT_CONCURRENCY
    return min(requested, MAX_CONCURRENCY)


class ConcurrencyLimiter:
    """Counting gate with a FIFO wait queue.

    Attributes:
        capacity: Maximum number of operations running at once.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active_count(self) -> int:
        """Number of operations currently holding a slot."""
        return self._active

    @property
    def pending_count(self) -> int:
        """Number of operations queued for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def run(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run ``fn(*args, **kwargs)`` once a slot is free.

        The slot is released when ``fn`` returns or raises.
        """
        await self._acquire()
        try:
            return await fn(*args, **kwargs)
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._active < self._capacity and not self._waiters:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            # The slot may have been handed over just before cancellation
            if waiter.done() and not waiter.cancelled():
                self._release()
            raise

    def _release(self) -> None:
        # Hand the slot straight to the next live waiter so that a newcomer
        # cannot overtake the queue; _active stays unchanged in that case.
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._active -= 1
