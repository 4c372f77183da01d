"""In-memory user directory backed by the TOML configuration."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from chat_signaling.domain.models import GroupInfo, UserProfile

logger = logging.getLogger(__name__)


class InMemoryUserDirectory:
    """Users, groups and last-seen timestamps held in process memory."""

    def __init__(
        self,
        users: Iterable[UserProfile] = (),
        groups: Iterable[GroupInfo] = (),
        allow_unknown_users: bool = True,
    ) -> None:
        """Initialize the directory.

        Args:
            users: Declared user profiles.
            groups: Declared groups.
            allow_unknown_users: When True, undeclared ids get a profile whose
                display name is the id.
        """
        self._users = {user.id: user for user in users}
        self._groups = {group.id: group for group in groups}
        self._last_seen: dict[str, datetime] = {}
        self.allow_unknown_users = allow_unknown_users

    def get_user(self, user_id: str) -> UserProfile | None:
        user = self._users.get(user_id)
        if user is None and self.allow_unknown_users:
            return UserProfile(id=user_id, display_name=user_id)
        return user

    def get_group(self, group_id: str) -> GroupInfo | None:
        return self._groups.get(group_id)

    def is_group_member(self, group_id: str, user_id: str) -> bool:
        group = self._groups.get(group_id)
        return group is not None and user_id in group.members

    def touch_last_seen(self, user_id: str) -> datetime:
        now = datetime.now(UTC)
        self._last_seen[user_id] = now
        logger.debug(f"Last seen for {user_id}: {now.isoformat()}")
        return now

    def last_seen(self, user_id: str) -> datetime | None:
        return self._last_seen.get(user_id)
