"""Public entry point turning RPC methods into live result streams.

Example:
    ```python
    register_method_types("UserService", {"findAll": "com.acme.User[]"})

    broker = LiveBroker({"UserService": user_service})
    config = BrokerConfiguration(path="/broker", real_time=True, stomp_path="mqtt://localhost")

    async for users in broker.call(config, "UserService", "findAll"):
        render(users)
    ```

In real-time mode the stream re-emits whenever a push event announces a
change to the method's return type. In one-shot mode it emits once and
completes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from livebroker.adapters.mqtt_channel import MQTTPushChannel
from livebroker.config.models import BrokerConfiguration
from livebroker.contracts.registry import (
    MethodIdentity,
    MethodReturnTypes,
    MethodTypeRegistry,
    default_registry,
)
from livebroker.runtime.bindings import ServiceBindings
from livebroker.runtime.connection import DEFAULT_RETRY_DELAY, ChannelFactory, ConnectionManager
from livebroker.runtime.dispatcher import EventDispatcher
from livebroker.runtime.invoker import RpcInvoker
from livebroker.runtime.stream import BrokerStream, StreamObserver
from livebroker.runtime.subscriptions import EngagedMethodData, SubscriptionRegistry

logger = logging.getLogger(__name__)


class LiveBroker:
    """Owns the push connection, the engaged-call registry and the dispatcher.

    Independent instances do not share any state, except the method
    return-type registry when the default one is used.
    """

    def __init__(
        self,
        bindings: ServiceBindings | Mapping[str, Any] | None = None,
        *,
        method_types: Optional[MethodTypeRegistry] = None,
        channel_factory: Optional[ChannelFactory] = None,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        self._bindings = bindings if isinstance(bindings, ServiceBindings) else ServiceBindings(bindings)
        self._method_types = method_types if method_types is not None else default_registry()
        self._registry = SubscriptionRegistry(self._method_types)
        self._invoker = RpcInvoker(self._bindings)
        self._dispatcher = EventDispatcher(self._registry, self._reinvoke)
        self._connection = ConnectionManager(
            channel_factory or MQTTPushChannel,
            self._dispatcher,
            retry_delay=retry_delay,
            on_reconnected=self._refresh_engaged,
        )
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def bindings(self) -> ServiceBindings:
        return self._bindings

    @property
    def method_types(self) -> MethodTypeRegistry:
        return self._method_types

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def invoker(self) -> RpcInvoker:
        return self._invoker

    def register_method_types(self, service: str, return_types: MethodReturnTypes) -> None:
        self._method_types.register(service, return_types)

    def call(self, config: BrokerConfiguration, service: str, method: str, *args: Any) -> BrokerStream:
        """Return a lazy stream of results of ``service.method(*args)``."""

        identity = MethodIdentity(service, method)
        if config.real_time:
            return BrokerStream(
                identity,
                lambda observer: self._engage(config, identity, args, observer),
                real_time=True,
            )
        return BrokerStream(
            identity,
            lambda observer: self._invoke_once(config, identity, args, observer),
            real_time=False,
        )

    def _engage(
        self,
        config: BrokerConfiguration,
        identity: MethodIdentity,
        args: tuple[Any, ...],
        observer: StreamObserver,
    ) -> Callable[[], None]:
        # Both first and repeated engagements deliver an immediate result.
        self._registry.engage(identity, args, observer, config)
        self._spawn(self._start_engaged(config, identity, args, observer))

        def teardown() -> None:
            self._registry.disengage(identity, observer)

        return teardown

    async def _start_engaged(
        self,
        config: BrokerConfiguration,
        identity: MethodIdentity,
        args: tuple[Any, ...],
        observer: StreamObserver,
    ) -> None:
        await self._connection.ensure_connected(config)
        if observer.closed:
            return
        await self._invoker.invoke(config, identity, args, observer)

    def _invoke_once(
        self,
        config: BrokerConfiguration,
        identity: MethodIdentity,
        args: tuple[Any, ...],
        observer: StreamObserver,
    ) -> Callable[[], None]:
        self._spawn(self._invoker.invoke(config, identity, args, observer, complete=True))
        return lambda: None

    async def _reinvoke(self, record: EngagedMethodData) -> None:
        if self._registry.get(record.identity) is not record:
            return
        await self._invoker.invoke(record.config, record.identity, record.args, record.observer)

    def _refresh_engaged(self) -> None:
        # Changes announced while the channel was down were missed.
        for record in self._registry:
            self._spawn(self._reinvoke(record))

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Broker task failed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait until every started call and triggered reinvocation has settled."""

        while self._tasks or self._dispatcher.inflight:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await self._dispatcher.drain()

    async def close(self) -> None:
        """Cancel pending work, forget engaged calls and close the push channel."""

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
        await self._dispatcher.stop()
        self._registry.clear()
        await self._connection.close()


__all__ = ["LiveBroker"]
