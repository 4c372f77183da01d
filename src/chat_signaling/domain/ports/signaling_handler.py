"""Server-side signaling handler port."""

from abc import ABC, abstractmethod
from typing import Any


class SignalingHandler(ABC):
    """Port for handling connection lifecycle and client events on the server."""

    @abstractmethod
    async def connect(self, user_id: str, handle: str) -> None:
        """A connection identified by ``handle`` opened for ``user_id``."""
        ...

    @abstractmethod
    async def disconnect(self, handle: str) -> None:
        """The connection identified by ``handle`` closed."""
        ...

    @abstractmethod
    async def handle(self, user_id: str, handle: str, event: str, payload: Any) -> None:
        """Handle one client event."""
        ...
