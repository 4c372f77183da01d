"""Live call session state owned by one client process."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from chat_signaling.application.services.candidate_buffer import CandidateBuffer
from chat_signaling.domain.models import CallState, CallType, PeerSignalingState

if TYPE_CHECKING:
    import asyncio

    from chat_signaling.domain.contracts.media_devices import MediaStreamProtocol
    from chat_signaling.domain.contracts.peer_connection import PeerConnectionProtocol
    from chat_signaling.domain.models import Candidate, SessionDescription, UserProfile


@dataclass
class CallSession:
    """One one-to-one call attempt as seen from the local side."""

    caller_id: str
    callee_id: str
    call_type: CallType
    state: CallState
    counterpart: UserProfile | None = None
    remote_offer: SessionDescription | None = None
    local_description_sent: bool = False
    remote_description_received: bool = False
    connection: PeerConnectionProtocol | None = None
    stream: MediaStreamProtocol | None = None
    timeout_task: asyncio.Task[None] | None = None
    pending_candidates: CandidateBuffer = field(init=False)

    def __post_init__(self) -> None:
        self.pending_candidates = CandidateBuffer(f"call {self.caller_id}->{self.callee_id}")

    def counterpart_of(self, self_id: str) -> str:
        return self.callee_id if self_id == self.caller_id else self.caller_id

    def release(self) -> None:
        """Cancel the answer timer, close the transport and stop local media."""
        if self.timeout_task is not None and not self.timeout_task.done():
            self.timeout_task.cancel()
        self.timeout_task = None
        self.pending_candidates.close()
        if self.connection is not None:
            self.connection.close()
            self.connection = None
        if self.stream is not None:
            self.stream.stop()
            self.stream = None


@dataclass
class PeerLink:
    """Negotiation state with one other participant of a group call."""

    peer_id: str
    connection: PeerConnectionProtocol
    originated: bool
    signaling_state: PeerSignalingState = PeerSignalingState.NEW
    pending_candidates: CandidateBuffer = field(init=False)

    def __post_init__(self) -> None:
        self.pending_candidates = CandidateBuffer(f"peer {self.peer_id}")

    def close(self) -> None:
        self.pending_candidates.close()
        self.connection.close()
        self.signaling_state = PeerSignalingState.CLOSED


@dataclass
class GroupCallSession:
    """The local mirror of one group call."""

    group_id: str
    call_type: CallType
    started_by: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    participants: list[str] = field(default_factory=list)
    per_peer: dict[str, PeerLink] = field(default_factory=dict)
    # Candidates that arrived before the PeerLink they belong to.
    early_candidates: dict[str, deque[Candidate]] = field(default_factory=dict)
    stream: MediaStreamProtocol | None = None

    def set_participants(self, participants: list[str]) -> None:
        """Replace the roster, keeping first-seen order and dropping duplicates."""
        self.participants = list(dict.fromkeys(participants))

    def add_participant(self, user_id: str) -> None:
        if user_id not in self.participants:
            self.participants.append(user_id)

    def drop_peer(self, peer_id: str) -> bool:
        """Close and forget everything tied to one peer. Returns True if a link existed."""
        self.early_candidates.pop(peer_id, None)
        link = self.per_peer.pop(peer_id, None)
        if link is None:
            return False
        link.close()
        return True

    def release(self) -> None:
        """Close every link and stop local media."""
        for peer_id in list(self.per_peer):
            self.drop_peer(peer_id)
        self.early_candidates.clear()
        if self.stream is not None:
            self.stream.stop()
            self.stream = None
