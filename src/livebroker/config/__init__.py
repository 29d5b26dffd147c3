"""Configuration models for livebroker."""

from livebroker.config.models import BrokerConfiguration, TopicLayout

__all__ = ["BrokerConfiguration", "TopicLayout"]
