"""Shared pytest fixtures for livebroker tests."""

from __future__ import annotations

import asyncio
import os
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from livebroker.broker import LiveBroker
from livebroker.config.models import BrokerConfiguration
from livebroker.contracts.registry import MethodTypeRegistry


USER_TYPE = "com.acme.model.User"
ORDER_TYPE = "com.acme.model.Order"


class FakePushChannel:
    """In-memory push channel recording subscriptions.

    Set ``fail`` to make :meth:`connect` raise like an unreachable broker.
    """

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.endpoint: str | None = None
        self.subscriptions: dict[str, Any] = {}
        self.closed = False
        self._connected = False
        self._ended = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self, endpoint: str) -> None:
        self.endpoint = endpoint
        if self.fail:
            raise ConnectionError(f"cannot reach {endpoint}")
        self._connected = True

    async def subscribe(self, topic: str, handler: Any) -> None:
        self.subscriptions[topic] = handler

    async def close(self) -> None:
        self._connected = False
        self.closed = True
        self._ended.set()

    async def wait_closed(self) -> None:
        await self._ended.wait()

    def drop(self) -> None:
        """Simulate the broker dropping the connection."""
        self._connected = False
        self._ended.set()

    async def push(self, topic: str, payload: bytes | str) -> None:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        await self.subscriptions[topic](topic, payload)


class FakeChannelFactory:
    """Channel factory whose first ``failures`` channels fail to connect."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.channels: list[FakePushChannel] = []

    def __call__(self) -> FakePushChannel:
        channel = FakePushChannel(fail=len(self.channels) < self.failures)
        self.channels.append(channel)
        return channel

    @property
    def current(self) -> FakePushChannel:
        return self.channels[-1]


class FakeUserService:
    """Async RPC facade recording every call it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.users: list[dict[str, Any]] = [{"id": 1, "name": "ada"}]
        self.error: Exception | None = None

    async def findAll(self, *args: Any) -> list[dict[str, Any]]:
        self.calls.append(("findAll", args))
        if self.error is not None:
            raise self.error
        return list(self.users)

    async def findById(self, user_id: int) -> dict[str, Any] | None:
        self.calls.append(("findById", (user_id,)))
        if self.error is not None:
            raise self.error
        return next((u for u in self.users if u["id"] == user_id), None)

    def count(self) -> int:
        self.calls.append(("count", ()))
        return len(self.users)

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]


class FakeOrderService:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def listOpen(self) -> list[dict[str, Any]]:
        self.calls.append(("listOpen", ()))
        return [{"id": 10, "status": "open"}]


@pytest.fixture
def method_types() -> MethodTypeRegistry:
    """Isolated return-type registry with the sample services registered."""
    registry = MethodTypeRegistry()
    registry.register(
        "UserService",
        {"findAll": f"{USER_TYPE}[]", "findById": USER_TYPE, "count": "java.lang.Long"},
    )
    registry.register("OrderService", {"listOpen": f"{ORDER_TYPE}[]"})
    return registry


@pytest.fixture
def realtime_config() -> BrokerConfiguration:
    return BrokerConfiguration(path="/broker", real_time=True, stomp_path="mqtt://localhost:1883")


@pytest.fixture
def oneshot_config() -> BrokerConfiguration:
    return BrokerConfiguration(path="/broker", real_time=False)


@pytest.fixture
def user_service() -> FakeUserService:
    return FakeUserService()


@pytest.fixture
def order_service() -> FakeOrderService:
    return FakeOrderService()


@pytest.fixture
def channel_factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest_asyncio.fixture
async def broker(method_types, channel_factory, user_service, order_service):
    """LiveBroker wired to fake services and an in-memory push channel."""
    instance = LiveBroker(
        {"UserService": user_service, "OrderService": order_service},
        method_types=method_types,
        channel_factory=channel_factory,
        retry_delay=0.01,
    )
    yield instance
    await instance.close()


@pytest.fixture
def mock_mqtt_client():
    """Mock asyncio_mqtt.Client for unit testing the MQTT channel."""
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    client.subscribe = AsyncMock()
    client.messages = MagicMock()
    return client


@pytest.fixture(autouse=True)
def reset_env(monkeypatch):
    """Clear LIVEBROKER_* variables so tests never see the host environment."""
    for var in list(os.environ):
        if var.startswith("LIVEBROKER_"):
            monkeypatch.delenv(var, raising=False)


@pytest.fixture(scope="session")
def mosquitto_url() -> str | None:
    """MQTT broker URL for integration tests (INTEGRATION_MQTT_URL)."""
    return os.getenv("INTEGRATION_MQTT_URL")


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test (no external dependencies)")
    config.addinivalue_line("markers", "integration: mark test as integration test (requires MQTT broker)")
