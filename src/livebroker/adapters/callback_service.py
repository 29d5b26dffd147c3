from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from livebroker.runtime.outcome import RpcError


class CallbackServiceAdapter:
    """Expose a callback-pair RPC service as awaitable methods.

    The wrapped service's methods take their positional arguments followed by
    a mapping holding ``callback(result)`` and ``errorHandler(message,
    exception)``. Each wrapped call resolves to the result or raises
    :class:`RpcError`.
    """

    def __init__(self, service: Any) -> None:
        self._service = service

    @property
    def service(self) -> Any:
        return self._service

    def __getattr__(self, name: str) -> Callable[..., Awaitable[Any]]:
        if name.startswith("_"):
            raise AttributeError(name)
        target = getattr(self._service, name)
        if not callable(target):
            raise AttributeError(f"{name} is not callable on {type(self._service).__name__}")

        async def call(*args: Any) -> Any:
            loop = asyncio.get_running_loop()
            future: asyncio.Future[Any] = loop.create_future()

            def settle(setter: Callable[[Any], None], value: Any) -> None:
                if not future.done():
                    setter(value)

            def callback(result: Any = None) -> None:
                loop.call_soon_threadsafe(settle, future.set_result, result)

            def error_handler(message: Any = None, exception: Any = None) -> None:
                error = RpcError(str(message) if message is not None else "RPC call failed", exception)
                loop.call_soon_threadsafe(settle, future.set_exception, error)

            target(*args, {"callback": callback, "errorHandler": error_handler})
            return await future

        call.__name__ = name
        return call


__all__ = ["CallbackServiceAdapter"]
