"""Live result streams over a request/response RPC facade.

Turns one-shot RPC calls into continuously updated streams by reissuing
engaged calls whenever the push channel announces a change to the entity
type they return.
"""

from livebroker.broker import LiveBroker
from livebroker.config import BrokerConfiguration, TopicLayout
from livebroker.contracts import (
    ChangeKind,
    EntityEvent,
    MethodIdentity,
    MethodTypeRegistry,
    register_method_types,
)
from livebroker.runtime.bindings import ServiceBindings
from livebroker.runtime.outcome import RpcError, RpcResult
from livebroker.runtime.stream import BrokerStream, StreamSubscription

__all__ = [
    "BrokerConfiguration",
    "BrokerStream",
    "ChangeKind",
    "EntityEvent",
    "LiveBroker",
    "MethodIdentity",
    "MethodTypeRegistry",
    "RpcError",
    "RpcResult",
    "ServiceBindings",
    "StreamSubscription",
    "TopicLayout",
    "register_method_types",
]
