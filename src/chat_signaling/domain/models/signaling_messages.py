"""Wire payloads exchanged over the message relay.

Field names are camelCase on the wire and snake_case in Python. Offers,
answers and candidates are opaque JSON objects produced by the peer
connection implementation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chat_signaling.domain.models.call_type import CallType
from chat_signaling.domain.models.user_profile import UserProfile

SessionDescription = dict[str, Any]
Candidate = dict[str, Any]


class WireModel(BaseModel):
    """Base for relay payloads."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Envelope(WireModel):
    """One websocket frame: ``{"event": ..., "data": ...}``."""

    event: str = Field(min_length=1)
    data: Any = None


# ---------------------------------------------------------------------------
# One-to-one calls
# ---------------------------------------------------------------------------


class CallUser(WireModel):
    to: str
    offer: SessionDescription
    type: CallType


class IncomingCall(WireModel):
    from_: UserProfile = Field(alias="from")
    offer: SessionDescription
    type: CallType


class AnswerCall(WireModel):
    to: str
    answer: SessionDescription


class CallAccepted(WireModel):
    answer: SessionDescription
    from_: str | None = Field(default=None, alias="from")


class Addressed(WireModel):
    """Payload that only names the counterpart (reject-call, end-call)."""

    to: str


class FromOnly(WireModel):
    """Payload that optionally names the sender (call-rejected, call-ended)."""

    from_: str | None = Field(default=None, alias="from")


class IceCandidateOut(WireModel):
    to: str
    candidate: Candidate


class IceCandidateIn(WireModel):
    candidate: Candidate
    from_: str | None = Field(default=None, alias="from")


# ---------------------------------------------------------------------------
# Group calls
# ---------------------------------------------------------------------------


class StartGroupCall(WireModel):
    group_id: str
    type: CallType


class GroupRef(WireModel):
    """Payload naming only a group (join/leave/end, group-call-ended)."""

    group_id: str


class GroupCallStarted(WireModel):
    group_id: str
    type: CallType
    participants: list[str]
    started_by: UserProfile
    started_at: datetime | None = None


class GroupParticipantChange(WireModel):
    """group-participant-joined and group-participant-left."""

    group_id: str
    participant: UserProfile
    participants: list[str]
    started_by: str | None = None


class GroupSignal(WireModel):
    """group-offer, group-answer and group-ice-candidate.

    Exactly one of ``offer``, ``answer`` or ``candidate`` is set. Clients send
    ``target_user_id``; the server adds ``from_`` when forwarding.
    """

    group_id: str
    target_user_id: str
    offer: SessionDescription | None = None
    answer: SessionDescription | None = None
    candidate: Candidate | None = None
    from_: str | None = Field(default=None, alias="from")


# ---------------------------------------------------------------------------
# Presence
# ---------------------------------------------------------------------------


class UserLastSeenUpdate(WireModel):
    user_id: str
    last_seen: datetime


class ErrorMessage(WireModel):
    message: str
