from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from livebroker.contracts.codec import PayloadDecodeError, parse_event
from livebroker.contracts.events import EntityEvent
from livebroker.runtime.logging import Logger
from livebroker.runtime.subscriptions import EngagedMethodData, SubscriptionRegistry

Reinvoke = Callable[[EngagedMethodData], Awaitable[Any]]


class EventDispatcher:
    """Turn entity change notifications into reinvocations of engaged calls.

    Invalidation is type-level: every engaged call whose declared return type
    is the changed entity type (or a collection of it) is reissued with its
    stored args, whether or not the changed record affects its result.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        reinvoke: Reinvoke,
        *,
        logger: Optional[Logger] = None,
    ) -> None:
        self._registry = registry
        self._reinvoke = reinvoke
        self._logger: Logger = logger or logging.getLogger(__name__)
        self._inflight: set[asyncio.Task[Any]] = set()
        self._events = 0

    @property
    def events(self) -> int:
        """Push events successfully decoded."""
        return self._events

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def __call__(self, topic: str, payload: bytes) -> None:
        self.on_push_message(topic, payload)

    def on_push_message(self, topic: str, payload: bytes | str) -> list[asyncio.Task[Any]]:
        """Decode one push message and schedule the reinvocations it triggers."""

        try:
            event = parse_event(topic, payload)
        except PayloadDecodeError as exc:
            self._logger.warning("dispatcher.decode.error", extra={"topic": topic, "error": str(exc)})
            return []
        self._events += 1
        return self.dispatch(event)

    def dispatch(self, event: EntityEvent) -> list[asyncio.Task[Any]]:
        records = self._registry.engaged_for(event.entity_type)
        kind = event.kind.value if event.kind is not None else None
        if not records:
            self._logger.debug(
                "dispatcher.event.unmatched",
                extra={"topic": event.topic, "entity_type": event.entity_type, "kind": kind},
            )
            return []

        self._logger.debug(
            "dispatcher.event.matched",
            extra={
                "topic": event.topic,
                "entity_type": event.entity_type,
                "kind": kind,
                "identities": [record.identity.combined for record in records],
            },
        )
        return [self._spawn(record) for record in records]

    def _spawn(self, record: EngagedMethodData) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._run(record))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run(self, record: EngagedMethodData) -> None:
        try:
            await self._reinvoke(record)
        except Exception as exc:
            self._logger.error(
                "dispatcher.reinvoke.error",
                extra={"identity": record.identity.combined, "error": str(exc)},
            )

    async def drain(self) -> None:
        """Wait for every reinvocation scheduled so far."""

        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def stop(self) -> None:
        for task in list(self._inflight):
            task.cancel()
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        self._inflight.clear()


__all__ = ["EventDispatcher", "Reinvoke"]
