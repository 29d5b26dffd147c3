"""Shared contracts: method return types, push events and payload decoding."""

from livebroker.contracts.codec import PayloadDecodeError, decode_payload, parse_event
from livebroker.contracts.events import ChangeKind, EntityEvent
from livebroker.contracts.registry import (
    MethodIdentity,
    MethodTypeRegistry,
    default_registry,
    register_method_types,
)

__all__ = [
    "ChangeKind",
    "EntityEvent",
    "MethodIdentity",
    "MethodTypeRegistry",
    "PayloadDecodeError",
    "decode_payload",
    "default_registry",
    "parse_event",
    "register_method_types",
]
