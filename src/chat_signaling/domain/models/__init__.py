"""Domain models for chat signaling."""

from chat_signaling.domain.models.active_group_call import ActiveGroupCall
from chat_signaling.domain.models.call_notice import VideoDowngraded
from chat_signaling.domain.models.call_state import (
    CALL_TRANSITIONS,
    CallEndReason,
    CallState,
    GroupCallPhase,
    PeerSignalingState,
)
from chat_signaling.domain.models.call_type import CallType
from chat_signaling.domain.models.presence_result import PresenceChange, PresenceResult
from chat_signaling.domain.models.signaling_messages import Candidate, SessionDescription
from chat_signaling.domain.models.user_profile import GroupInfo, UserProfile

__all__ = [
    "CALL_TRANSITIONS",
    "ActiveGroupCall",
    "CallEndReason",
    "CallState",
    "CallType",
    "Candidate",
    "GroupCallPhase",
    "GroupInfo",
    "PeerSignalingState",
    "PresenceChange",
    "PresenceResult",
    "SessionDescription",
    "UserProfile",
    "VideoDowngraded",
]
