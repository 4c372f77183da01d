"""Server-side registry of live group calls."""

from __future__ import annotations

import logging

from chat_signaling.domain.models import ActiveGroupCall, CallType

logger = logging.getLogger(__name__)


class GroupCallRosters:
    """Holds at most one ``ActiveGroupCall`` per group."""

    def __init__(self) -> None:
        self._calls: dict[str, ActiveGroupCall] = {}

    def get(self, group_id: str) -> ActiveGroupCall | None:
        return self._calls.get(group_id)

    def start(self, group_id: str, call_type: CallType, started_by: str) -> ActiveGroupCall:
        """Create the roster for a new call with its starter as sole participant."""
        call = ActiveGroupCall(group_id=group_id, call_type=call_type, started_by=started_by)
        call.add(started_by)
        self._calls[group_id] = call
        logger.info(f"Group call started in {group_id} by {started_by} ({call_type})")
        return call

    def discard(self, group_id: str) -> ActiveGroupCall | None:
        call = self._calls.pop(group_id, None)
        if call is not None:
            logger.info(f"Group call in {group_id} closed")
        return call

    def calls_with(self, user_id: str) -> list[ActiveGroupCall]:
        """Every live call the user currently participates in."""
        return [call for call in self._calls.values() if user_id in call.participants]

    def __len__(self) -> int:
        return len(self._calls)
