from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Callable, Optional

from livebroker.config.models import BrokerConfiguration
from livebroker.domain.ports import PushChannel, PushHandler

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 5.0

ChannelFactory = Callable[[], PushChannel]
ReconnectHook = Callable[[], None]


class ConnectionState(str, Enum):
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Lazily connect the shared push channel and keep retrying until it is up.

    Topic subscriptions are registered once per established connection.
    Connection failures are logged and retried after a fixed delay; they are
    never raised to callers of :meth:`ensure_connected`, which simply wait.
    A connected channel is watched: when it drops, a new connection is
    started right away and ``on_reconnected`` runs once it is up.
    """

    def __init__(
        self,
        channel_factory: ChannelFactory,
        handler: PushHandler,
        *,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        on_reconnected: Optional[ReconnectHook] = None,
    ) -> None:
        self._channel_factory = channel_factory
        self._handler = handler
        self._retry_delay = retry_delay
        self._on_reconnected = on_reconnected
        self._state = ConnectionState.UNCONNECTED
        self._channel: Optional[PushChannel] = None
        self._ready: Optional[asyncio.Future[None]] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._watch_task: Optional[asyncio.Task[None]] = None
        self._attempts = 0
        self._connections = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def channel(self) -> Optional[PushChannel]:
        return self._channel

    @property
    def attempts(self) -> int:
        """Connection attempts made, including failed ones."""
        return self._attempts

    @property
    def connections(self) -> int:
        """Connections successfully established."""
        return self._connections

    async def ensure_connected(self, config: BrokerConfiguration) -> None:
        """Return once the push channel is connected and its topics are subscribed."""

        if self._state is ConnectionState.CONNECTED:
            if self._channel is not None and self._channel.connected:
                return
            await self._handle_loss(self._channel)

        if not config.stomp_path:
            raise ValueError("stomp_path is required to open the push channel")

        self._start(config)
        assert self._ready is not None
        await asyncio.shield(self._ready)

    def _start(self, config: BrokerConfiguration) -> None:
        if self._ready is None or self._ready.done():
            self._ready = asyncio.get_running_loop().create_future()
            self._task = asyncio.create_task(self._connect_loop(config, self._ready))

    async def _connect_loop(self, config: BrokerConfiguration, ready: asyncio.Future[None]) -> None:
        self._state = ConnectionState.CONNECTING
        endpoint = config.stomp_path
        assert endpoint is not None

        while True:
            self._attempts += 1
            channel: Optional[PushChannel] = None
            try:
                channel = self._channel_factory()
                await channel.connect(endpoint)
                for topic in config.topics():
                    await channel.subscribe(topic, self._handler)
            except Exception as exc:
                logger.warning(
                    "Push channel connection to %s failed (attempt %d): %s; retrying in %.1fs",
                    endpoint,
                    self._attempts,
                    exc,
                    self._retry_delay,
                )
                if channel is not None:
                    await self._discard(channel)
                await asyncio.sleep(self._retry_delay)
                continue

            self._channel = channel
            self._state = ConnectionState.CONNECTED
            self._connections += 1
            logger.info("Push channel connected to %s (topics=%s)", endpoint, ", ".join(config.topics()))
            self._watch_task = asyncio.create_task(self._watch(channel, config))
            if not ready.done():
                ready.set_result(None)
            if self._connections > 1 and self._on_reconnected is not None:
                try:
                    self._on_reconnected()
                except Exception:
                    logger.error("Reconnect hook failed", exc_info=True)
            return

    async def _watch(self, channel: PushChannel, config: BrokerConfiguration) -> None:
        await channel.wait_closed()
        if self._channel is not channel:
            return
        await self._handle_loss(channel)
        self._start(config)

    async def _handle_loss(self, channel: Optional[PushChannel]) -> None:
        logger.warning("Push channel connection lost; reconnecting")
        self._state = ConnectionState.UNCONNECTED
        self._channel = None
        if channel is not None:
            await self._discard(channel)

    @staticmethod
    async def _discard(channel: PushChannel) -> None:
        try:
            await channel.close()
        except Exception as exc:
            logger.debug("Ignoring error closing failed channel: %s", exc)

    async def close(self) -> None:
        """Stop any pending attempt and close the channel."""

        for task in (self._watch_task, self._task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._watch_task = None
        self._task = None

        if self._ready is not None and not self._ready.done():
            self._ready.cancel()
        self._ready = None

        if self._channel is not None:
            channel, self._channel = self._channel, None
            await self._discard(channel)
        self._state = ConnectionState.UNCONNECTED
        logger.info("Push channel closed")


__all__ = ["ConnectionManager", "ConnectionState", "DEFAULT_RETRY_DELAY", "ChannelFactory", "ReconnectHook"]
