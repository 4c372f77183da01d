"""Non-fatal notices surfaced to the user interface."""

from pydantic import BaseModel, ConfigDict

from chat_signaling.domain.models.call_type import CallType


class VideoDowngraded(BaseModel):
    """Video could not be acquired and the call continues audio-only."""

    model_config = ConfigDict(frozen=True)

    requested: CallType = CallType.VIDEO
    actual: CallType = CallType.AUDIO
    reason: str

    @property
    def message(self) -> str:
        return "Video unavailable - switched to audio call"
