"""User and group directory loader."""

from dataclasses import dataclass, field

from chat_signaling.adapters.config.app_config import AppConfig
from chat_signaling.domain.models import GroupInfo, UserProfile


@dataclass(frozen=True)
class DirectoryConfiguration:
    """Validated users and groups from the TOML directory."""

    users: list[UserProfile] = field(default_factory=list)
    groups: list[GroupInfo] = field(default_factory=list)


class DirectoryConfigurationLoader:
    """Loads the user directory from app config."""

    @staticmethod
    def load(config: AppConfig) -> DirectoryConfiguration:
        """Load and validate users and groups.

        Raises:
            ValueError: On missing ids, duplicate ids, or (when unknown users
                are not allowed) groups listing undeclared members.
        """
        data = config.get_directory_config()

        users: list[UserProfile] = []
        user_ids: set[str] = set()
        for user_data in data["users"]:
            if not isinstance(user_data, dict) or not user_data.get("id"):
                raise ValueError("Every [[users]] entry must have an 'id'")
            user_id = str(user_data["id"])
            if user_id in user_ids:
                raise ValueError(f"Duplicate user id in directory: {user_id}")
            user_ids.add(user_id)
            users.append(
                UserProfile(
                    id=user_id,
                    display_name=str(user_data.get("display_name") or user_id),
                    avatar=user_data.get("avatar"),
                )
            )

        groups: list[GroupInfo] = []
        group_ids: set[str] = set()
        for group_data in data["groups"]:
            if not isinstance(group_data, dict) or not group_data.get("id"):
                raise ValueError("Every [[groups]] entry must have an 'id'")
            group_id = str(group_data["id"])
            if group_id in group_ids:
                raise ValueError(f"Duplicate group id in directory: {group_id}")
            group_ids.add(group_id)

            members = group_data.get("members", [])
            if not isinstance(members, list):
                raise ValueError(f"Group {group_id} 'members' must be a list")
            member_ids = tuple(dict.fromkeys(str(m) for m in members))
            if not config.allow_unknown_users:
                unknown = [m for m in member_ids if m not in user_ids]
                if unknown:
                    raise ValueError(f"Group {group_id} lists undeclared users: {unknown}")

            groups.append(
                GroupInfo(
                    id=group_id,
                    name=str(group_data.get("name") or group_id),
                    members=member_ids,
                )
            )

        return DirectoryConfiguration(users=users, groups=groups)
