"""Adapter implementations bridging domain ports to infrastructure."""

from .callback_service import CallbackServiceAdapter
from .mqtt_channel import MQTTPushChannel

__all__ = ["CallbackServiceAdapter", "MQTTPushChannel"]
