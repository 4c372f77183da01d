"""User profile domain model."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserProfile(BaseModel):
    """Public identity of a user as shown to call counterparts."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    display_name: str
    avatar: str | None = None


class GroupInfo(BaseModel):
    """A chat group and its member ids."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    members: tuple[str, ...] = ()
