"""Web adapters for serving the signaling websocket."""

from chat_signaling.adapters.web.connection_hub import ConnectionHub
from chat_signaling.adapters.web.presence import InMemoryPresenceRegistry
from chat_signaling.adapters.web.signaling_app import SignalingWebAdapter

__all__ = ["ConnectionHub", "InMemoryPresenceRegistry", "SignalingWebAdapter"]
