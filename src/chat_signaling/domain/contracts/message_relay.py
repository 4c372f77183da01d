"""Message relay contract (protocol)."""

from typing import Any, Protocol


class MessageRelayProtocol(Protocol):
    """Delivers named events to live connections.

    Delivery is best-effort: events for a handle that no longer exists are
    dropped. Events sent to the same handle arrive in send order.
    """

    async def send(self, handle: str, event: str, payload: Any) -> bool:
        """Deliver to one connection. Returns False if the handle is gone."""
        ...

    async def send_to_user(self, user_id: str, event: str, payload: Any) -> int:
        """Deliver to every connection of a user. Returns the number of connections reached."""
        ...

    async def broadcast(self, event: str, payload: Any) -> int:
        """Deliver to every connection."""
        ...
