"""Client signaling channel contract (protocol)."""

from typing import Any, Protocol


class SignalingChannelProtocol(Protocol):
    """Fire-and-forget event emission from a client to the server."""

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Send one event. No acknowledgment is expected."""
        ...
