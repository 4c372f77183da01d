"""Protocol for surfacing call activity to the user interface."""

from typing import Protocol

from chat_signaling.domain.errors import ChatSignalingError
from chat_signaling.domain.models.call_notice import VideoDowngraded
from chat_signaling.domain.models.call_state import CallEndReason, CallState, GroupCallPhase
from chat_signaling.domain.models.call_type import CallType
from chat_signaling.domain.models.user_profile import UserProfile


class CallListenerProtocol(Protocol):
    """Receives call lifecycle notifications from the coordinators."""

    def on_call_state_changed(self, state: CallState) -> None: ...

    def on_incoming_call(self, caller: UserProfile, call_type: CallType) -> None: ...

    def on_call_ended(self, reason: CallEndReason) -> None: ...

    def on_call_failed(self, error: ChatSignalingError) -> None:
        """A media failure or ``CallTimeout`` the user should see."""
        ...

    def on_notice(self, notice: VideoDowngraded) -> None: ...

    def on_group_call_phase_changed(self, group_id: str, phase: GroupCallPhase) -> None: ...

    def on_group_roster_changed(self, group_id: str, participants: list[str]) -> None: ...
