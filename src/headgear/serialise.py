"""
Serialise executions of asynchronous operations.

Wrapping an operation makes concurrent calls run one at a time, in the order
the calls were made. Each caller still gets its own result or error, callers
waiting for their turn stay pending::

    @serialise_executions
    async def update_cache(key, value):
        cached = await read_cache()
        ...
        await write_cache(cached)

The lock is not reentrant: calling a wrapped operation from inside itself
waits forever.
"""

import asyncio
import collections
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class ExecutionSerializer:
    """
    First-in first-out asynchronous mutual exclusion.

    Release hands ownership directly to the longest waiting caller, so a call
    arriving in between cannot overtake it.

    Example::

        serializer = ExecutionSerializer()

        async with serializer:
            ...
    """

    def __init__(self) -> None:
        self._locked = False
        self._waiters: collections.deque[asyncio.Future] = collections.deque()

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def waiting(self) -> int:
        """Number of callers waiting for their turn."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        # The queue is always empty while unlocked, release() drains it.
        if not self._locked:
            self._locked = True
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Ownership was handed over just before cancellation.
                self.release()
            raise
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def release(self) -> None:
        if not self._locked:
            raise RuntimeError("ExecutionSerializer is not acquired")
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Ownership passes on, the serializer stays locked.
                waiter.set_result(None)
                return
        self._locked = False

    async def __aenter__(self) -> None:
        await self.acquire()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return "ExecutionSerializer(locked=%r, waiting=%d)" % (
            self._locked,
            self.waiting,
        )


def serialise_executions(fn: F) -> F:
    """
    Decorator making calls of an async function run one at a time, FIFO.

    Call N starts only after call N-1 has completed, successfully or not.
    """
    serializer = ExecutionSerializer()

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        async with serializer:
            logger.debug("Running serialised call of %s", fn.__qualname__)
            return await fn(*args, **kwargs)

    wrapper.serializer = serializer  # type: ignore[attr-defined]
    return wrapper  # type: ignore[return-value]
