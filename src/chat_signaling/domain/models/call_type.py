"""Call type domain model."""

from enum import StrEnum


class CallType(StrEnum):
    """Media kind of a call as carried on the wire."""

    AUDIO = "audio"
    VIDEO = "video"

    @property
    def wants_video(self) -> bool:
        return self is CallType.VIDEO
