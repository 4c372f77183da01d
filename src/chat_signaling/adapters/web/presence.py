"""Presence tracking for signaling connections."""

import logging

from chat_signaling.domain.models import PresenceChange, PresenceResult

logger = logging.getLogger(__name__)


class InMemoryPresenceRegistry:
    """Tracks which connection handles belong to which user.

    A user is online exactly while at least one handle is registered for them.
    """

    def __init__(self) -> None:
        """Initialize the presence registry."""
        # Live handles per user id
        self._user_handles: dict[str, set[str]] = {}
        # Reverse index: handle -> owning user id
        self._owners: dict[str, str] = {}

    def register(self, user_id: str, handle: str) -> PresenceResult:
        """Register a connection handle for a user.

        Registering the same handle twice is a no-op. A handle previously owned
        by another user is moved to ``user_id``.

        Args:
            user_id: The user the connection authenticated as.
            handle: Opaque connection identifier.

        Returns:
            Whether the user came online and their handle count after the join.
        """
        previous_owner = self._owners.get(handle)
        if previous_owner is not None and previous_owner != user_id:
            logger.warning(f"Handle {handle} moved from {previous_owner} to {user_id}")
            self.unregister(handle)

        handles = self._user_handles.setdefault(user_id, set())
        came_online = not handles
        handles.add(handle)
        self._owners[handle] = user_id

        return PresenceResult(user_id=user_id, came_online=came_online, handle_count=len(handles))

    def unregister(self, handle: str) -> PresenceChange:
        """Remove a connection handle from whichever user owns it.

        Args:
            handle: Opaque connection identifier.

        Returns:
            The owning user (None if the handle was unknown) and whether they
            went offline.
        """
        user_id = self._owners.pop(handle, None)
        if user_id is None:
            return PresenceChange()

        handles = self._user_handles.get(user_id, set())
        handles.discard(handle)
        if handles:
            return PresenceChange(user_id=user_id, handle_count=len(handles))

        # Clean up empty user sets
        self._user_handles.pop(user_id, None)
        return PresenceChange(user_id=user_id, went_offline=True)

    def resolve(self, user_id: str) -> set[str]:
        return set(self._user_handles.get(user_id, ()))

    def snapshot(self) -> set[str]:
        return set(self._user_handles)

    def owner_of(self, handle: str) -> str | None:
        return self._owners.get(handle)

    def is_online(self, user_id: str) -> bool:
        return user_id in self._user_handles

    def get_total_count(self) -> int:
        """Get the number of online users."""
        return len(self._user_handles)
