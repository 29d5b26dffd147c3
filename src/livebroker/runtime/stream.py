"""Lazy, cancellable result streams.

A :class:`BrokerStream` does nothing until it is subscribed, either with
callbacks through :meth:`BrokerStream.subscribe` or by async iteration.
Each subscription gets its own observer; cancelling it closes the observer
so late RPC responses addressed to it are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Optional

from livebroker.contracts.registry import MethodIdentity
from livebroker.runtime.outcome import RpcError

logger = logging.getLogger(__name__)

_COMPLETED = object()


class StreamObserver:
    """Base observer: ignores emissions once closed or completed."""

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def on_next(self, value: Any) -> None:
        if self._closed:
            logger.debug("Dropping result for closed observer")
            return
        self._emit_next(value)

    def on_error(self, error: RpcError) -> None:
        if self._closed:
            logger.debug("Dropping error for closed observer: %s", error.message)
            return
        self._emit_error(error)

    def on_completed(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._emit_completed()

    def _emit_next(self, value: Any) -> None:
        raise NotImplementedError

    def _emit_error(self, error: RpcError) -> None:
        raise NotImplementedError

    def _emit_completed(self) -> None:
        raise NotImplementedError


class CallbackObserver(StreamObserver):
    """Observer delegating to plain callables; callback errors are logged, not raised."""

    def __init__(
        self,
        on_next: Optional[Callable[[Any], Any]] = None,
        on_error: Optional[Callable[[RpcError], Any]] = None,
        on_completed: Optional[Callable[[], Any]] = None,
    ) -> None:
        super().__init__()
        self._next = on_next
        self._error = on_error
        self._completed = on_completed

    def _emit_next(self, value: Any) -> None:
        self._call(self._next, value)

    def _emit_error(self, error: RpcError) -> None:
        self._call(self._error, error)

    def _emit_completed(self) -> None:
        self._call(self._completed)

    @staticmethod
    def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.error("Observer callback %r raised", callback, exc_info=True)


class QueueObserver(StreamObserver):
    """Observer buffering emissions for async iteration."""

    def __init__(self) -> None:
        super().__init__()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    def _emit_next(self, value: Any) -> None:
        self._queue.put_nowait(value)

    def _emit_error(self, error: RpcError) -> None:
        self._queue.put_nowait(error)

    def _emit_completed(self) -> None:
        self._queue.put_nowait(_COMPLETED)

    async def get(self) -> Any:
        return await self._queue.get()


class StreamSubscription:
    """Handle returned by :meth:`BrokerStream.subscribe`."""

    def __init__(self, observer: StreamObserver, teardown: Callable[[], None]) -> None:
        self._observer = observer
        self._teardown = teardown
        self._unsubscribed = False

    @property
    def closed(self) -> bool:
        return self._unsubscribed or self._observer.closed

    def unsubscribe(self) -> None:
        """Stop receiving results. Synchronous; in-flight calls are not aborted."""

        if self._unsubscribed:
            return
        self._unsubscribed = True
        self._observer.close()
        self._teardown()


Activator = Callable[[StreamObserver], Callable[[], None]]


class BrokerStream:
    """Stream of results for one RPC method call.

    Async iteration yields results and :class:`RpcError` values and ends when
    the stream completes (one-shot mode). Real-time streams only end when the
    consumer stops iterating.
    """

    def __init__(self, identity: MethodIdentity, activate: Activator, *, real_time: bool) -> None:
        self._identity = identity
        self._activate = activate
        self._real_time = real_time

    @property
    def identity(self) -> MethodIdentity:
        return self._identity

    @property
    def real_time(self) -> bool:
        return self._real_time

    def subscribe(
        self,
        observer: Any = None,
        on_error: Optional[Callable[[RpcError], Any]] = None,
        on_completed: Optional[Callable[[], Any]] = None,
    ) -> StreamSubscription:
        """Start the call and route its emissions to ``observer``.

        ``observer`` may be a :class:`StreamObserver`, any object exposing
        ``on_next``/``on_error``/``on_completed``, or an ``on_next`` callable.
        Must be called from within a running event loop.
        """

        if isinstance(observer, StreamObserver):
            target = observer
        elif observer is not None and hasattr(observer, "on_next"):
            target = CallbackObserver(
                observer.on_next,
                getattr(observer, "on_error", None),
                getattr(observer, "on_completed", None),
            )
        else:
            target = CallbackObserver(observer, on_error, on_completed)
        teardown = self._activate(target)
        return StreamSubscription(target, teardown)

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        observer = QueueObserver()
        subscription = self.subscribe(observer)
        try:
            while True:
                item = await observer.get()
                if item is _COMPLETED:
                    return
                yield item
        finally:
            subscription.unsubscribe()

    async def first(self) -> Any:
        """Return the first result, raising the first error instead if it comes first."""

        iterator = self._iterate()
        try:
            async for item in iterator:
                if isinstance(item, RpcError):
                    raise item
                return item
        finally:
            await iterator.aclose()
        raise RpcError(f"{self._identity} completed without a result")

    def __repr__(self) -> str:
        mode = "real-time" if self._real_time else "one-shot"
        return f"BrokerStream({self._identity}, {mode})"


__all__ = [
    "BrokerStream",
    "CallbackObserver",
    "QueueObserver",
    "StreamObserver",
    "StreamSubscription",
]
