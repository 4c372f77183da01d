"""Server-side roster of a live group call."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from chat_signaling.domain.models.call_type import CallType


@dataclass
class ActiveGroupCall:
    """Participants currently joined to a group call, in join order."""

    group_id: str
    call_type: CallType
    started_by: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    participants: list[str] = field(default_factory=list)

    def add(self, user_id: str) -> bool:
        """Append a participant. Returns False if already present."""
        if user_id in self.participants:
            return False
        self.participants.append(user_id)
        return True

    def remove(self, user_id: str) -> bool:
        """Drop a participant. Returns False if not present."""
        if user_id not in self.participants:
            return False
        self.participants.remove(user_id)
        return True

    @property
    def is_empty(self) -> bool:
        return not self.participants
