"""Call state machine domain models."""

from enum import StrEnum


class CallState(StrEnum):
    """State of the local side of a one-to-one call attempt."""

    IDLE = "idle"
    ORIGINATING = "originating"
    RINGING = "ringing"
    CONNECTING = "connecting"
    ACTIVE = "active"


class CallEndReason(StrEnum):
    """Why a one-to-one call attempt returned to idle."""

    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    ENDED_LOCALLY = "ended_locally"
    ENDED_REMOTELY = "ended_remotely"
    DECLINED = "declined"
    FAILED = "failed"


# Legal transitions; every state may always fall back to IDLE.
CALL_TRANSITIONS: dict[CallState, frozenset[CallState]] = {
    CallState.IDLE: frozenset({CallState.ORIGINATING, CallState.RINGING}),
    CallState.ORIGINATING: frozenset({CallState.CONNECTING, CallState.IDLE}),
    CallState.RINGING: frozenset({CallState.CONNECTING, CallState.IDLE}),
    CallState.CONNECTING: frozenset({CallState.ACTIVE, CallState.IDLE}),
    CallState.ACTIVE: frozenset({CallState.IDLE}),
}


class GroupCallPhase(StrEnum):
    """Local participation in a group call."""

    IDLE = "idle"
    RINGING = "ringing"
    JOINED = "joined"


class PeerSignalingState(StrEnum):
    """Negotiation state of one PeerLink, mirroring the peer-connection signaling states."""

    NEW = "new"
    HAVE_LOCAL_OFFER = "have-local-offer"
    HAVE_REMOTE_OFFER = "have-remote-offer"
    STABLE = "stable"
    CLOSED = "closed"
