"""Broker configuration supplied by each call site."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from livebroker.runtime.env import EnvMapping, get_bool, get_optional_str, get_str


class TopicLayout(str, Enum):
    """How entity change notifications are spread over push topics.

    ``generic`` uses a single topic whose payload names the changed type.
    ``by_kind`` uses one topic per change kind below the entity topic.
    """

    GENERIC = "generic"
    BY_KIND = "by_kind"


class BrokerConfiguration(BaseModel):
    """Immutable configuration selecting real-time or one-shot behaviour.

    Attributes:
        path: Base URL of the RPC facade, without trailing slash
        real_time: Keep results live through push-triggered reinvocation
        stomp_path: Push channel endpoint (required when ``real_time``)
        topic_layout: Topic arrangement used by the push channel
        entity_topic: Topic (or topic prefix for ``by_kind``) carrying entity changes
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    path: str = "broker"
    real_time: bool = Field(default=False, alias="realTime")
    stomp_path: Optional[str] = Field(default=None, alias="stompPath")
    topic_layout: TopicLayout = Field(default=TopicLayout.GENERIC, alias="topicLayout")
    entity_topic: str = Field(default="topic/entities", alias="entityTopic", min_length=1)

    @field_validator("path")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if v != "/" else v

    @field_validator("entity_topic")
    @classmethod
    def strip_topic_slashes(cls, v: str) -> str:
        stripped = v.strip("/")
        if not stripped:
            raise ValueError("entity_topic must name a topic")
        return stripped

    @model_validator(mode="after")
    def require_push_endpoint(self) -> BrokerConfiguration:
        if self.real_time and not self.stomp_path:
            raise ValueError("stomp_path is required when real_time is enabled")
        return self

    def topics(self) -> tuple[str, ...]:
        """Push topics to subscribe once per connection."""
        if self.topic_layout is TopicLayout.BY_KIND:
            return tuple(f"{self.entity_topic}/{kind}" for kind in ("persisted", "updated", "deleted"))
        return (self.entity_topic,)

    @classmethod
    def from_env(cls, env: EnvMapping | None = None) -> BrokerConfiguration:
        """Load configuration from environment variables.

        Optional environment variables:
            LIVEBROKER_PATH: Base URL of the RPC facade (default: broker)
            LIVEBROKER_REAL_TIME: Enable real-time mode (default: false)
            LIVEBROKER_STOMP_PATH: Push channel endpoint
            LIVEBROKER_TOPIC_LAYOUT: generic | by_kind (default: generic)
            LIVEBROKER_ENTITY_TOPIC: Entity topic (default: topic/entities)

        Raises:
            pydantic.ValidationError: If the resulting configuration is invalid
            ValueError: If LIVEBROKER_REAL_TIME is not a boolean word
        """
        return cls(
            path=get_str("PATH", "broker", env=env),
            real_time=get_bool("REAL_TIME", False, env=env),
            stomp_path=get_optional_str("STOMP_PATH", env=env),
            topic_layout=get_str("TOPIC_LAYOUT", TopicLayout.GENERIC.value, env=env),
            entity_topic=get_str("ENTITY_TOPIC", "topic/entities", env=env),
        )


__all__ = ["BrokerConfiguration", "TopicLayout"]
