from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol

if TYPE_CHECKING:  # pragma: no cover
    from livebroker.runtime.outcome import RpcError


PushHandler = Callable[[str, bytes], Awaitable[None]]


class PushChannel(Protocol):
    @property
    def connected(self) -> bool: ...

    async def connect(self, endpoint: str) -> None: ...

    async def subscribe(self, topic: str, handler: PushHandler) -> None: ...

    async def close(self) -> None: ...

    async def wait_closed(self) -> None:
        """Return once the connection has ended, whether dropped or closed."""
        ...


class Observer(Protocol):
    @property
    def closed(self) -> bool: ...

    def on_next(self, value: Any) -> None: ...

    def on_error(self, error: "RpcError") -> None: ...

    def on_completed(self) -> None: ...
