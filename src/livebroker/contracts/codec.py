"""Push payload decoding.

Payloads are either the bare fully-qualified entity type (plain text or a
JSON string) or a JSON object carrying the type under ``type``,
``entityType`` or ``entity``. Any string value shaped like an ISO-8601
date-time is revived into a :class:`datetime.datetime`; everything else is
passed through untouched.
"""

from __future__ import annotations

from datetime import datetime
import re
from typing import Any

import orjson

from livebroker.contracts.events import ChangeKind, EntityEvent

_ISO_DATETIME = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})T(?P<time>\d{2}:\d{2}(?::\d{2})?)"
    r"(?:\.(?P<fraction>\d+))?(?P<offset>Z|[+-]\d{2}(?::?\d{2})?)?$"
)

_TYPE_KEYS = ("type", "entityType", "entity")


class PayloadDecodeError(ValueError):
    """Raised when a push payload carries no usable discriminator."""


def parse_datetime(value: str) -> datetime | None:
    match = _ISO_DATETIME.match(value)
    if match is None:
        return None
    text = f"{match['date']}T{match['time']}"
    if match["fraction"]:
        text += "." + match["fraction"][:6].ljust(6, "0")
    offset = match["offset"]
    if offset:
        text += "+00:00" if offset == "Z" else offset
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def revive_dates(value: Any) -> Any:
    """Recursively replace date-time strings with ``datetime`` values."""

    if isinstance(value, str):
        parsed = parse_datetime(value)
        return parsed if parsed is not None else value
    if isinstance(value, dict):
        return {key: revive_dates(item) for key, item in value.items()}
    if isinstance(value, list):
        return [revive_dates(item) for item in value]
    return value


def decode_payload(payload: bytes | str) -> Any:
    """Decode a push payload, falling back to the raw text for non-JSON bodies."""

    text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
    text = text.strip()
    if not text:
        raise PayloadDecodeError("empty payload")
    try:
        decoded = orjson.loads(text)
    except orjson.JSONDecodeError:
        return text
    return revive_dates(decoded)


def _kind_of(value: Any) -> ChangeKind | None:
    if isinstance(value, ChangeKind):
        return value
    if isinstance(value, str):
        try:
            return ChangeKind(value.lower())
        except ValueError:
            return None
    return None


def parse_event(topic: str, payload: bytes | str) -> EntityEvent:
    """Decode ``payload`` received on ``topic`` into an :class:`EntityEvent`.

    Raises:
        PayloadDecodeError: If the payload is empty, not UTF-8, or names no entity type
    """

    try:
        decoded = decode_payload(payload)
    except UnicodeDecodeError as exc:
        raise PayloadDecodeError(f"payload is not UTF-8: {exc}") from exc

    kind: ChangeKind | None = None
    data: Any = None
    if isinstance(decoded, str):
        entity_type = decoded
    elif isinstance(decoded, dict):
        entity_type = next(
            (decoded[key] for key in _TYPE_KEYS if isinstance(decoded.get(key), str) and decoded[key]),
            None,
        )
        if entity_type is None:
            raise PayloadDecodeError(f"no entity type in payload keys {sorted(decoded)}")
        kind = _kind_of(decoded.get("kind"))
        data = decoded.get("data", decoded)
    else:
        raise PayloadDecodeError(f"unsupported payload shape: {type(decoded).__name__}")

    kind = ChangeKind.from_topic(topic) or kind

    return EntityEvent(entity_type=entity_type.strip(), kind=kind, topic=topic, data=data)


__all__ = ["PayloadDecodeError", "decode_payload", "parse_datetime", "parse_event", "revive_dates"]
