"""Default no-op call listener."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chat_signaling.domain.errors import ChatSignalingError
    from chat_signaling.domain.models import (
        CallEndReason,
        CallState,
        CallType,
        GroupCallPhase,
        UserProfile,
        VideoDowngraded,
    )


class NullCallListener:
    """Listener used when no user interface is attached."""

    def on_call_state_changed(self, state: CallState) -> None:
        pass

    def on_incoming_call(self, caller: UserProfile, call_type: CallType) -> None:
        pass

    def on_call_ended(self, reason: CallEndReason) -> None:
        pass

    def on_call_failed(self, error: ChatSignalingError) -> None:
        pass

    def on_notice(self, notice: VideoDowngraded) -> None:
        pass

    def on_group_call_phase_changed(self, group_id: str, phase: GroupCallPhase) -> None:
        pass

    def on_group_roster_changed(self, group_id: str, participants: list[str]) -> None:
        pass
