"""Protocol for broadcasting presence updates."""

from datetime import datetime
from typing import Protocol


class PresenceBroadcasterProtocol(Protocol):
    """Protocol for broadcasting presence changes to all connections."""

    async def broadcast_online_users(self, user_ids: set[str]) -> None:
        """Broadcast the full set of online users.

        Args:
            user_ids: Every user id with at least one live connection.
        """
        ...

    async def broadcast_last_seen(self, user_id: str, last_seen: datetime) -> None:
        """Broadcast that a user went offline.

        Args:
            user_id: The user whose last connection closed.
            last_seen: When the user was last seen.
        """
        ...
