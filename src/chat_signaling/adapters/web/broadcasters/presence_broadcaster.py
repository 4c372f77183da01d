"""Broadcaster for presence updates."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chat_signaling.domain.contracts.presence_broadcaster import PresenceBroadcasterProtocol
from chat_signaling.domain.models import signaling_events as events
from chat_signaling.domain.models.signaling_messages import UserLastSeenUpdate

if TYPE_CHECKING:
    from datetime import datetime

    from chat_signaling.domain.contracts.message_relay import MessageRelayProtocol

logger = logging.getLogger(__name__)


class PresenceBroadcaster(PresenceBroadcasterProtocol):
    """Broadcasts presence updates to every connection via the message relay."""

    def __init__(self, relay: MessageRelayProtocol) -> None:
        self.relay = relay

    async def broadcast_online_users(self, user_ids: set[str]) -> None:
        """Broadcast the online user list.

        Always broadcasts to every connection; the list is sorted so every
        client sees the same order.
        """
        try:
            delivered = await self.relay.broadcast(events.ONLINE_USERS, sorted(user_ids))
            logger.debug(f"Broadcast {len(user_ids)} online user(s) to {delivered} connection(s)")
        except Exception as e:
            logger.error(f"Failed to broadcast online users: {e}", exc_info=True)

    async def broadcast_last_seen(self, user_id: str, last_seen: datetime) -> None:
        """Broadcast that a user's last connection closed."""
        payload = UserLastSeenUpdate(user_id=user_id, last_seen=last_seen).to_wire()
        try:
            await self.relay.broadcast(events.USER_LAST_SEEN_UPDATE, payload)
        except Exception as e:
            logger.error(f"Failed to broadcast last seen for {user_id}: {e}", exc_info=True)
