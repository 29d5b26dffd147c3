from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ChangeKind(str, Enum):
    PERSISTED = "persisted"
    UPDATED = "updated"
    DELETED = "deleted"

    @classmethod
    def from_topic(cls, topic: str) -> Optional[ChangeKind]:
        """Map the last topic segment (``.../updated``) to a change kind."""

        segment = topic.rstrip("/").rsplit("/", 1)[-1].lower()
        try:
            return cls(segment)
        except ValueError:
            return None


class EntityEvent(BaseModel):
    """Decoded push notification announcing that an entity type changed."""

    model_config = ConfigDict(frozen=True)

    entity_type: str
    kind: Optional[ChangeKind] = None
    topic: str = ""
    data: Any = None


__all__ = ["ChangeKind", "EntityEvent"]
