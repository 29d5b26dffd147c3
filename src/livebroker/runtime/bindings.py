"""Service binding resolution.

Bindings are the per-service client objects the invocation bridge calls.
They are either registered up front or produced by an async factory the
first time a service is used. Loads are idempotent per name and shared by
concurrent callers. A failing load is logged and resolves to ``None``; the
failure surfaces later, when the missing binding is invoked.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from livebroker.config.models import BrokerConfiguration

logger = logging.getLogger(__name__)

BindingFactory = Callable[[BrokerConfiguration, str], Awaitable[Any]]
EngineLoader = Callable[[BrokerConfiguration], Awaitable[None]]


class ServiceBindings:
    """Cache of resolved service clients keyed by service name."""

    def __init__(
        self,
        clients: Optional[Mapping[str, Any]] = None,
        factories: Optional[Mapping[str, BindingFactory]] = None,
        *,
        engine: Optional[EngineLoader] = None,
        default_factory: Optional[BindingFactory] = None,
    ) -> None:
        self._clients: dict[str, Any] = dict(clients or {})
        self._factories: dict[str, BindingFactory] = dict(factories or {})
        self._default_factory = default_factory
        self._engine = engine
        self._engine_load: Optional[asyncio.Future[None]] = None
        self._pending: dict[str, asyncio.Future[Any]] = {}

    def register(self, name: str, client: Any) -> None:
        self._clients[name] = client

    def register_factory(self, name: str, factory: BindingFactory) -> None:
        self._factories[name] = factory

    def loaded(self, name: str) -> bool:
        return name in self._clients

    async def resolve(self, config: BrokerConfiguration, name: str) -> Any:
        """Return the binding for ``name``, loading it (and the engine) on first use."""

        await self._ensure_engine(config)

        if name in self._clients:
            return self._clients[name]

        pending = self._pending.get(name)
        if pending is None:
            pending = asyncio.ensure_future(self._load(config, name))
            self._pending[name] = pending
        return await asyncio.shield(pending)

    async def _ensure_engine(self, config: BrokerConfiguration) -> None:
        if self._engine is None:
            return
        if self._engine_load is None:
            self._engine_load = asyncio.ensure_future(self._load_engine(config))
        await asyncio.shield(self._engine_load)

    async def _load_engine(self, config: BrokerConfiguration) -> None:
        assert self._engine is not None
        try:
            await self._engine(config)
            logger.debug("RPC engine loaded from %s", config.path)
        except Exception as exc:
            logger.warning("Failed to load RPC engine from %s: %s", config.path, exc)

    async def _load(self, config: BrokerConfiguration, name: str) -> Any:
        factory = self._factories.get(name, self._default_factory)
        try:
            if factory is None:
                logger.warning("No binding registered for service %s", name)
                return None
            try:
                client = await factory(config, name)
            except Exception as exc:
                logger.warning("Failed to load binding for service %s from %s: %s", name, config.path, exc)
                return None
            if client is not None:
                self._clients[name] = client
                logger.debug("Loaded binding for service %s", name)
            return client
        finally:
            self._pending.pop(name, None)


__all__ = ["BindingFactory", "EngineLoader", "ServiceBindings"]
