"""Presence registry contract (protocol)."""

from typing import Protocol

from chat_signaling.domain.models.presence_result import PresenceChange, PresenceResult


class PresenceRegistryProtocol(Protocol):
    """Maps user ids to their live connection handles.

    A user id is present iff it owns at least one handle.
    """

    def register(self, user_id: str, handle: str) -> PresenceResult:
        """Add a handle under a user. Idempotent per handle."""
        ...

    def unregister(self, handle: str) -> PresenceChange:
        """Remove a handle from whichever user owns it."""
        ...

    def resolve(self, user_id: str) -> set[str]:
        """Return the user's current handles; empty means unreachable."""
        ...

    def snapshot(self) -> set[str]:
        """Return every online user id."""
        ...

    def owner_of(self, handle: str) -> str | None:
        """Return the user owning a handle, if registered."""
        ...
