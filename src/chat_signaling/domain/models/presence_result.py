"""Presence registry result domain models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class PresenceResult(BaseModel):
    """Result of registering a connection handle.

    ``came_online`` is True when the handle is the user's first live connection.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    came_online: bool
    handle_count: int


class PresenceChange(BaseModel):
    """Result of unregistering a connection handle.

    ``user_id`` is None when the handle was not registered.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    went_offline: bool = False
    handle_count: int = 0
    last_seen: datetime | None = None
