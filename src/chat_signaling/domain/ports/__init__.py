"""Ports (interfaces) for the ports-and-adapters architecture."""

from chat_signaling.domain.ports.signaling_event_sink import SignalingEventSink
from chat_signaling.domain.ports.signaling_handler import SignalingHandler

__all__ = [
    "SignalingEventSink",
    "SignalingHandler",
]
