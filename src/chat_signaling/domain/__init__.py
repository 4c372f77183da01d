"""Domain layer - signaling models, contracts and errors."""

from chat_signaling.domain.errors import (
    CallTimeout,
    ChatSignalingError,
    InvalidCallStateError,
    MediaAcquisitionError,
    MediaFailureKind,
    NotAMemberError,
    SelfCallError,
    StaleSignalError,
)
from chat_signaling.domain.models import CallState, CallType, UserProfile
from chat_signaling.domain.ports import SignalingEventSink, SignalingHandler

__all__ = [
    "CallState",
    "CallTimeout",
    "CallType",
    "ChatSignalingError",
    "InvalidCallStateError",
    "MediaAcquisitionError",
    "MediaFailureKind",
    "NotAMemberError",
    "SelfCallError",
    "SignalingEventSink",
    "SignalingHandler",
    "StaleSignalError",
    "UserProfile",
]
