"""Push channel monitor.

Connects to the push channel described by the ``LIVEBROKER_*`` environment
and logs every entity change notification as a JSON line, which is handy
for checking what the server announces before wiring up live calls::

    LIVEBROKER_STOMP_PATH=mqtt://localhost:1883 python -m livebroker

``LIVEBROKER_LOG_LEVEL`` sets the log level (default ``INFO``).
"""

from __future__ import annotations

import asyncio
from collections import Counter
import logging
import signal
from typing import Optional

from livebroker.adapters.mqtt_channel import MQTTPushChannel
from livebroker.config.models import BrokerConfiguration
from livebroker.contracts.codec import PayloadDecodeError, parse_event
from livebroker.runtime.connection import DEFAULT_RETRY_DELAY, ChannelFactory, ConnectionManager
from livebroker.runtime.env import EnvMapping, env_key, get_str
from livebroker.runtime.logging import Logger, configure_logging


class PushMonitor:
    """Log entity change notifications and count them per entity type."""

    def __init__(
        self,
        config: BrokerConfiguration,
        *,
        channel_factory: Optional[ChannelFactory] = None,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        logger: Optional[Logger] = None,
    ) -> None:
        self._config = config
        self._logger: Logger = logger or logging.getLogger(__name__)
        self._connection = ConnectionManager(
            channel_factory or MQTTPushChannel,
            self.on_message,
            retry_delay=retry_delay,
        )
        self._counts: Counter[str] = Counter()

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    async def on_message(self, topic: str, payload: bytes) -> None:
        try:
            event = parse_event(topic, payload)
        except PayloadDecodeError as exc:
            self._logger.warning("monitor.decode.error", extra={"topic": topic, "error": str(exc)})
            return
        self._counts[event.entity_type] += 1
        self._logger.info(
            "monitor.event",
            extra={
                "topic": topic,
                "entity_type": event.entity_type,
                "kind": event.kind.value if event.kind is not None else None,
            },
        )

    async def run(self, stop: asyncio.Event) -> None:
        """Stay connected until ``stop`` is set."""

        self._logger.info(
            "monitor.start",
            extra={"endpoint": self._config.stomp_path, "topics": list(self._config.topics())},
        )
        try:
            await self._connection.ensure_connected(self._config)
            self._logger.info("monitor.connected", extra={"endpoint": self._config.stomp_path})
            await stop.wait()
        finally:
            await self._connection.close()
            self._logger.info("monitor.stop", extra={"events": sum(self._counts.values())})


async def run_monitor(env: EnvMapping | None = None) -> None:
    logger = configure_logging(get_str("LOG_LEVEL", "INFO", env=env), name="livebroker.monitor")
    config = BrokerConfiguration.from_env(env)
    if not config.stomp_path:
        raise SystemExit(f"{env_key('STOMP_PATH')} must be set to monitor push events")

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    def _handle_stop(sig: signal.Signals) -> None:
        logger.info("monitor.signal", extra={"signal": sig.name})
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_stop, sig)
    try:
        await PushMonitor(config, logger=logger).run(stop)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main() -> None:
    asyncio.run(run_monitor())


__all__ = ["PushMonitor", "main", "run_monitor"]
