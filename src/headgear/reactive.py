"""
Reactive values computed asynchronously from other reactive values.

A :py:class:`ComputedAsync` cell recomputes its value whenever one of its
upstream :py:class:`Signal` (or other cell) values changes. Computations can
overlap: a change while a computation is running starts a new one and marks
the running one as superseded. Only the result of the most recently started
computation is ever applied::

    avatar = Signal(None)

    async def compose(values, superseded):
        ...
        superseded.check()  # raises Superseded, the cell swallows it
        ...

    avatar_svg = ComputedAsync({"avatar": avatar}, compose, initial=None)
    avatar.value = Avatar(...)  # supersedes any running compose() call
    await avatar_svg.wait()
    avatar_svg.value

Cells must be created while an asyncio event loop is running.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Mapping, Optional, TypeVar, Union

from attrs import define

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Superseded(BaseException):
    """
    Raised by a computation to stop after its token has been superseded.

    It derives from :py:class:`BaseException` so that ``except Exception``
    blocks in compute functions do not intercept it, and it cannot be
    subclassed.
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        raise TypeError("Superseded cannot be subclassed")


class SupersededToken:
    """
    One-shot notifier handed to each computation of a cell.

    The token settles exactly once: it becomes superseded when a newer
    computation starts, or settles as not superseded when its own result is
    applied.
    """

    __slots__ = ("_superseded", "_settled")

    def __init__(self) -> None:
        self._superseded = False
        self._settled = asyncio.Event()

    @property
    def superseded(self) -> bool:
        return self._superseded

    def check(self) -> None:
        """Raise :py:class:`Superseded` if a newer computation has started."""
        if self._superseded:
            raise Superseded()

    async def wait(self) -> bool:
        """Wait until the token settles; return True if it was superseded."""
        await self._settled.wait()
        return self._superseded

    def _supersede(self) -> None:
        if not self._settled.is_set():
            self._superseded = True
            self._settled.set()

    def _finish(self) -> None:
        self._settled.set()

    def __repr__(self) -> str:
        if not self._settled.is_set():
            return "SupersededToken(pending)"
        return "SupersededToken(superseded=%r)" % self._superseded


@define(frozen=True)
class _Value:
    value: Any


@define(frozen=True)
class _Error:
    error: BaseException


class Observable(Generic[T]):
    """
    Value that notifies observers when it changes.

    Dependent cells are notified before subscribers, so a cell has always
    started recomputing by the time any subscriber sees a new value.
    """

    def __init__(self) -> None:
        self._dependents: list["ComputedAsync"] = []
        self._subscribers: list[Callable[[], None]] = []

    @property
    def value(self) -> T:
        raise NotImplementedError()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Call ``callback()`` after every change of the value.

        :return: Function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _add_dependent(self, cell: "ComputedAsync") -> None:
        self._dependents.append(cell)

    def _remove_dependent(self, cell: "ComputedAsync") -> None:
        if cell in self._dependents:
            self._dependents.remove(cell)

    def _notify(self) -> None:
        for cell in list(self._dependents):
            cell._upstream_changed()
        for callback in list(self._subscribers):
            callback()


class Signal(Observable[T]):
    """
    Settable reactive value.

    Assigning an object that is not the current value notifies observers.
    """

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, value: T) -> None:
        if value is self._value:
            return
        self._value = value
        self._notify()

    def __repr__(self) -> str:
        return "Signal(%r)" % (self._value,)


ComputeFunction = Callable[[dict[str, Any], SupersededToken], Awaitable[T]]


class ComputedAsync(Observable[T]):
    """
    Reactive value holding the result of the latest asynchronous computation.

    ``compute(values, superseded)`` is called with a snapshot of the upstream
    values, keyed by the names given in ``signals``, and a
    :py:class:`SupersededToken`. It is called once on creation and again
    every time an upstream value changes.

    Reading :py:attr:`value` returns the initial value until a computation
    completes, then the result of the most recently started computation that
    completed. If that computation raised, reading re-raises the error.
    Results of superseded computations are discarded. A cancelled computation
    leaves the previous state in place.

    :param signals: Mapping of name to upstream :py:class:`Signal` or cell.
    :param compute: Coroutine function computing the value.
    :param initial: Value held until the first computation completes.
    """

    def __init__(
        self,
        signals: Mapping[str, Observable],
        compute: ComputeFunction,
        initial: Optional[T] = None,
    ) -> None:
        super().__init__()
        self._signals = dict(signals)
        self._compute = compute
        self._state: Union[_Value, _Error] = _Value(initial)
        self._token: Optional[SupersededToken] = None
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._closed = False
        for signal in self._signals.values():
            signal._add_dependent(self)
        self._upstream_changed()

    @property
    def value(self) -> T:
        state = self._state
        if isinstance(state, _Error):
            raise state.error
        return state.value

    @property
    def computing(self) -> bool:
        """True while the latest computation has not settled."""
        return not self._idle.is_set()

    async def wait(self) -> None:
        """Wait until the latest computation has settled."""
        await self._idle.wait()

    def close(self) -> None:
        """Stop observing upstream values and supersede any computation."""
        if self._closed:
            return
        self._closed = True
        for signal in self._signals.values():
            signal._remove_dependent(self)
        if self._token is not None:
            self._token._supersede()
            self._token = None
        self._idle.set()

    def _upstream_changed(self) -> None:
        if self._closed:
            return
        loop = asyncio.get_running_loop()

        # Superseding the running computation and installing the token of its
        # replacement happen without yielding to the event loop.
        previous, token = self._token, SupersededToken()
        self._token = token
        if previous is not None:
            previous._supersede()
        self._idle.clear()

        try:
            values = {name: signal.value for name, signal in self._signals.items()}
        except Exception as e:
            logger.debug("Upstream value of %r is an error: %r", self, e)
            token._finish()
            self._apply(_Error(e))
            return

        task = loop.create_task(self._run(token, values))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, token: SupersededToken, values: dict[str, Any]) -> None:
        try:
            result = await self._compute(values, token)
        except Superseded:
            logger.debug("Computation %r stopped as superseded", self._compute)
            if token is self._token:
                # Stopped voluntarily without a newer computation; keep the
                # previous state.
                token._finish()
                self._idle.set()
            return
        except asyncio.CancelledError:
            logger.debug("Computation %r was cancelled", self._compute)
            if token is self._token:
                token._finish()
                self._idle.set()
            raise
        except Exception as e:
            if token is not self._token:
                logger.warning(
                    "Superseded computation %r failed", self._compute, exc_info=e
                )
                return
            token._finish()
            self._apply(_Error(e))
        else:
            if token is not self._token:
                logger.debug(
                    "Discarding result of superseded computation %r", self._compute
                )
                return
            token._finish()
            self._apply(_Value(result))

    def _apply(self, state: Union[_Value, _Error]) -> None:
        previous = self._state
        self._state = state
        self._idle.set()
        if (
            isinstance(previous, _Value)
            and isinstance(state, _Value)
            and previous.value is state.value
        ):
            return
        self._notify()

    def __repr__(self) -> str:
        return "ComputedAsync(%s)" % ", ".join(self._signals)
