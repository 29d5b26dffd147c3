"""MQTT push channel backed by asyncio-mqtt.

Entity change notifications are received from an MQTT broker. Endpoints
use the ``mqtt://[user:pass@]host[:port]`` form; topics use ``/``
separators and MQTT wildcards (``+`` and ``#``).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse
import uuid

import asyncio_mqtt as mqtt
from pydantic import BaseModel

from livebroker.domain.ports import PushHandler

logger = logging.getLogger(__name__)


class ConnectionParams(BaseModel):
    """Parsed MQTT connection parameters from URL.

    Attributes:
        hostname: MQTT broker hostname or IP address
        port: MQTT broker port (default 1883)
        username: Authentication username (optional)
        password: Authentication password (optional, redacted in logs)
    """

    hostname: str
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None

    def __repr__(self) -> str:
        password_str = "***REDACTED***" if self.password else None
        return (
            f"ConnectionParams(hostname={self.hostname!r}, port={self.port}, "
            f"username={self.username!r}, password={password_str!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


def parse_mqtt_url(url: str) -> ConnectionParams:
    """Parse MQTT URL into connection parameters.

    Raises:
        ValueError: If URL has invalid scheme (not mqtt://)

    Examples:
        >>> parse_mqtt_url("mqtt://broker.example.com")
        ConnectionParams(hostname='broker.example.com', port=1883, ...)
    """
    parsed = urlparse(url)

    if parsed.scheme != "mqtt":
        raise ValueError(f"Invalid MQTT URL scheme: {parsed.scheme!r}. Expected 'mqtt://'.")

    return ConnectionParams(
        hostname=parsed.hostname or "localhost",
        port=parsed.port or 1883,
        username=parsed.username,
        password=parsed.password,
    )


def topic_matches(topic: str, pattern: str) -> bool:
    """Check if ``topic`` matches an MQTT subscription pattern.

    ``+`` matches one level, a trailing ``#`` matches any remaining levels.
    """
    if pattern == topic:
        return True

    topic_parts = topic.split("/")
    pattern_parts = pattern.split("/")

    if pattern_parts and pattern_parts[-1] == "#":
        prefix = pattern_parts[:-1]
        return len(topic_parts) >= len(prefix) and all(
            p == "+" or p == t for t, p in zip(topic_parts, prefix)
        )

    if len(topic_parts) != len(pattern_parts):
        return False

    return all(p == "+" or p == t for t, p in zip(topic_parts, pattern_parts))


class MQTTPushChannel:
    """Push channel receiving entity notifications over MQTT.

    One instance represents one connection lifetime: once the broker drops
    the connection, ``connected`` turns False and a new channel is needed.
    """

    def __init__(self, client_id: Optional[str] = None, *, keepalive: int = 60, qos: int = 1) -> None:
        self._client_id = client_id or f"livebroker-{uuid.uuid4().hex[:8]}"
        self._keepalive = keepalive
        self._qos = qos
        self._client: Optional[mqtt.Client] = None
        self._handlers: dict[str, PushHandler] = {}
        self._dispatch_task: Optional[asyncio.Task[None]] = None
        self._connected = False
        self._ended = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def client_id(self) -> str:
        return self._client_id

    async def connect(self, endpoint: str) -> None:
        """Connect to the broker at ``endpoint`` and start dispatching messages.

        Raises:
            ValueError: If the endpoint is not an mqtt:// URL
            mqtt.MqttError: If the broker cannot be reached
        """
        if self._connected:
            logger.debug("Already connected, skipping connect()")
            return

        params = parse_mqtt_url(endpoint)
        client = mqtt.Client(
            hostname=params.hostname,
            port=params.port,
            username=params.username,
            password=params.password,
            client_id=self._client_id,
            keepalive=self._keepalive,
        )
        await client.__aenter__()
        self._client = client
        self._connected = True
        logger.info(
            "Connected to MQTT broker at %s:%d (client_id=%s)",
            params.hostname,
            params.port,
            self._client_id,
        )
        self._dispatch_task = asyncio.create_task(self._dispatch_messages())

    async def subscribe(self, topic: str, handler: PushHandler) -> None:
        """Subscribe to ``topic`` and route its messages to ``handler``.

        Raises:
            RuntimeError: If not connected to broker
        """
        if not self._connected or self._client is None:
            raise RuntimeError("Cannot subscribe: not connected to MQTT broker")

        self._handlers[topic] = handler
        await self._client.subscribe(topic, qos=self._qos)
        logger.info("Subscribed to topic: %s (qos=%d)", topic, self._qos)

    async def close(self) -> None:
        """Stop dispatching and disconnect. Safe to call when not connected."""
        was_connected = self._connected
        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            try:
                await asyncio.wait_for(self._dispatch_task, timeout=1.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
            self._dispatch_task = None

        if self._client is not None:
            client, self._client = self._client, None
            try:
                await client.__aexit__(None, None, None)
            except mqtt.MqttError as e:
                logger.debug("Ignoring error during MQTT disconnect: %s", e)

        self._connected = False
        if was_connected:
            logger.info("Disconnected from MQTT broker")
        self._ended.set()

    async def wait_closed(self) -> None:
        await self._ended.wait()

    def _handler_for(self, topic: str) -> Optional[PushHandler]:
        handler = self._handlers.get(topic)
        if handler is not None:
            return handler
        for pattern, candidate in self._handlers.items():
            if topic_matches(topic, pattern):
                return candidate
        return None

    async def _dispatch_messages(self) -> None:
        """Route incoming messages to handlers until the connection ends.

        Handler errors are logged and isolated; a broker error marks the
        channel disconnected so the next caller reconnects.
        """
        assert self._client is not None, "Client must be set before dispatch"

        try:
            async with self._client.messages() as messages:
                async for message in messages:
                    topic = str(message.topic)
                    payload = message.payload
                    if isinstance(payload, str):
                        payload = payload.encode("utf-8")
                    elif isinstance(payload, bytearray):
                        payload = bytes(payload)
                    elif not isinstance(payload, bytes):
                        logger.warning("Unexpected payload type %s, skipping", type(payload))
                        continue

                    handler = self._handler_for(topic)
                    if handler is None:
                        logger.warning("No handler for topic: %s", topic)
                        continue
                    try:
                        await handler(topic, payload)
                    except Exception as e:
                        logger.error("Error in push handler for topic %s: %s", topic, e, exc_info=True)
        except asyncio.CancelledError:
            logger.debug("Message dispatch task cancelled")
            raise
        except mqtt.MqttError as e:
            logger.warning("MQTT connection lost: %s", e)
        finally:
            self._connected = False
            self._ended.set()


__all__ = ["ConnectionParams", "MQTTPushChannel", "parse_mqtt_url", "topic_matches"]
