"""Client-side signaling event sink port."""

from abc import ABC, abstractmethod
from typing import Any


class SignalingEventSink(ABC):
    """Port for consuming server events on a client."""

    @abstractmethod
    async def dispatch(self, event: str, payload: Any) -> None:
        """Handle one server event to completion."""
        ...
