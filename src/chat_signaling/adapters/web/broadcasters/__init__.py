"""Broadcasters for web adapter."""

from chat_signaling.adapters.web.broadcasters.presence_broadcaster import PresenceBroadcaster

__all__ = ["PresenceBroadcaster"]
