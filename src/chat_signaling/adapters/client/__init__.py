"""Client-side adapters."""

from chat_signaling.adapters.client.signaling_client import SignalingClient, fetch_online_users

__all__ = ["SignalingClient", "fetch_online_users"]
