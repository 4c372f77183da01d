"""User directory contracts (protocols)."""

from datetime import datetime
from typing import Protocol

from chat_signaling.domain.models.user_profile import GroupInfo, UserProfile


class GroupMembershipProtocol(Protocol):
    """Answers group membership questions."""

    def is_group_member(self, group_id: str, user_id: str) -> bool:
        """Return True if the user belongs to the group."""
        ...


class UserDirectoryProtocol(GroupMembershipProtocol, Protocol):
    """Lookup of users and groups, plus last-seen persistence."""

    def get_user(self, user_id: str) -> UserProfile | None:
        """Return the user's public profile, or None if unknown."""
        ...

    def get_group(self, group_id: str) -> GroupInfo | None:
        """Return the group, or None if unknown."""
        ...

    def touch_last_seen(self, user_id: str) -> datetime:
        """Record the user as active now and return the stored timestamp."""
        ...
