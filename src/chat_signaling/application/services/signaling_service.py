"""Server-side signaling: presence lifecycle and event routing between clients."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from chat_signaling.application.services.group_call_rosters import GroupCallRosters
from chat_signaling.domain.models import ActiveGroupCall, UserProfile
from chat_signaling.domain.models import signaling_events as events
from chat_signaling.domain.models.signaling_messages import (
    Addressed,
    AnswerCall,
    CallAccepted,
    CallUser,
    ErrorMessage,
    FromOnly,
    GroupCallStarted,
    GroupParticipantChange,
    GroupRef,
    GroupSignal,
    IceCandidateIn,
    IceCandidateOut,
    IncomingCall,
    StartGroupCall,
    WireModel,
)
from chat_signaling.domain.ports import SignalingHandler

if TYPE_CHECKING:
    from chat_signaling.domain.contracts.message_relay import MessageRelayProtocol
    from chat_signaling.domain.contracts.presence_broadcaster import PresenceBroadcasterProtocol
    from chat_signaling.domain.contracts.presence_registry import PresenceRegistryProtocol
    from chat_signaling.domain.contracts.user_directory import UserDirectoryProtocol

logger = logging.getLogger(__name__)

_Handler = Callable[[str, Any], Awaitable[None]]


class SignalingService(SignalingHandler):
    """Routes client events through the presence registry and message relay."""

    def __init__(
        self,
        presence: PresenceRegistryProtocol,
        relay: MessageRelayProtocol,
        presence_broadcaster: PresenceBroadcasterProtocol,
        directory: UserDirectoryProtocol,
        rosters: GroupCallRosters | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            presence: Registry of live connections per user.
            relay: Delivers events to connections.
            presence_broadcaster: Announces presence changes to everyone.
            directory: User and group lookup, last-seen persistence.
            rosters: Live group call rosters (a fresh registry by default).
        """
        self.presence = presence
        self.relay = relay
        self.presence_broadcaster = presence_broadcaster
        self.directory = directory
        self.rosters = rosters or GroupCallRosters()
        self._handlers: dict[str, tuple[type[WireModel], _Handler]] = {
            events.CALL_USER: (CallUser, self._on_call_user),
            events.ANSWER_CALL: (AnswerCall, self._on_answer_call),
            events.REJECT_CALL: (Addressed, self._on_reject_call),
            events.ICE_CANDIDATE: (IceCandidateOut, self._on_ice_candidate),
            events.END_CALL: (Addressed, self._on_end_call),
            events.START_GROUP_CALL: (StartGroupCall, self._on_start_group_call),
            events.JOIN_GROUP_CALL: (GroupRef, self._on_join_group_call),
            events.LEAVE_GROUP_CALL: (GroupRef, self._on_leave_group_call),
            events.END_GROUP_CALL: (GroupRef, self._on_end_group_call),
            events.GROUP_OFFER: (GroupSignal, self._on_group_signal(events.GROUP_OFFER)),
            events.GROUP_ANSWER: (GroupSignal, self._on_group_signal(events.GROUP_ANSWER)),
            events.GROUP_ICE_CANDIDATE: (
                GroupSignal,
                self._on_group_signal(events.GROUP_ICE_CANDIDATE),
            ),
        }

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, user_id: str, handle: str) -> None:
        """Register a new connection and announce the online users."""
        result = self.presence.register(user_id, handle)
        self.directory.touch_last_seen(user_id)
        logger.info(
            f"Presence join: user {user_id} on connection {handle}. "
            f"User connections: {result.handle_count}"
        )
        await self.presence_broadcaster.broadcast_online_users(self.presence.snapshot())

    async def disconnect(self, handle: str) -> None:
        """Unregister a connection; clean up after users that went offline."""
        change = self.presence.unregister(handle)
        if change.user_id is None:
            logger.debug(f"Disconnect for unknown connection {handle}")
            return
        logger.info(
            f"Presence leave: user {change.user_id} from connection {handle}. "
            f"User connections: {change.handle_count}"
        )
        if not change.went_offline:
            return

        user_id = change.user_id
        last_seen = self.directory.touch_last_seen(user_id)
        await self.presence_broadcaster.broadcast_last_seen(user_id, last_seen)
        for call in self.rosters.calls_with(user_id):
            await self._remove_participant(call, user_id)
        await self.presence_broadcaster.broadcast_online_users(self.presence.snapshot())

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------

    async def handle(self, user_id: str, handle: str, event: str, payload: Any) -> None:
        """Validate and dispatch one client event.

        Unknown events are answered with an ``error`` event on the sending
        connection; invalid payloads are logged and dropped.
        """
        entry = self._handlers.get(event)
        if entry is None:
            logger.warning(f"Unknown event '{event}' from {user_id}")
            await self.relay.send(
                handle, events.ERROR, ErrorMessage(message=f"Unknown event: {event}").to_wire()
            )
            return

        model, handler = entry
        try:
            message = model.model_validate(payload or {})
        except ValidationError as e:
            logger.warning(f"Dropping malformed '{event}' from {user_id}: {e.error_count()} error(s)")
            return
        await handler(user_id, message)

    # ------------------------------------------------------------------
    # One-to-one calls
    # ------------------------------------------------------------------

    async def _on_call_user(self, user_id: str, message: CallUser) -> None:
        if message.to == user_id:
            logger.warning(f"Dropping self-addressed call-user from {user_id}")
            return
        caller = self.directory.get_user(user_id)
        if caller is None:
            logger.error(f"Caller {user_id} not found in directory; dropping call-user")
            return
        delivered = await self.relay.send_to_user(
            message.to,
            events.INCOMING_CALL,
            IncomingCall(from_=caller, offer=message.offer, type=message.type).to_wire(),
        )
        if delivered:
            logger.info(f"Call {user_id} -> {message.to} ({message.type}) on {delivered} connection(s)")
        else:
            logger.warning(f"No connections for {message.to}; call from {user_id} not delivered")

    async def _on_answer_call(self, user_id: str, message: AnswerCall) -> None:
        await self._forward(
            message.to,
            events.CALL_ACCEPTED,
            CallAccepted(answer=message.answer, from_=user_id),
        )

    async def _on_reject_call(self, user_id: str, message: Addressed) -> None:
        await self._forward(message.to, events.CALL_REJECTED, FromOnly(from_=user_id))

    async def _on_ice_candidate(self, user_id: str, message: IceCandidateOut) -> None:
        await self._forward(
            message.to,
            events.ICE_CANDIDATE,
            IceCandidateIn(candidate=message.candidate, from_=user_id),
        )

    async def _on_end_call(self, user_id: str, message: Addressed) -> None:
        await self._forward(message.to, events.CALL_ENDED, FromOnly(from_=user_id))

    async def _forward(self, to: str, event: str, message: WireModel) -> None:
        delivered = await self.relay.send_to_user(to, event, message.to_wire())
        if not delivered:
            logger.debug(f"No connections for {to}; '{event}' dropped")

    # ------------------------------------------------------------------
    # Group calls
    # ------------------------------------------------------------------

    async def _on_start_group_call(self, user_id: str, message: StartGroupCall) -> None:
        if not self._check_member(message.group_id, user_id, events.START_GROUP_CALL):
            return
        if self.rosters.get(message.group_id) is not None:
            logger.info(f"Group call already live in {message.group_id}; treating start as join")
            await self._on_join_group_call(user_id, GroupRef(group_id=message.group_id))
            return

        call = self.rosters.start(message.group_id, message.type, user_id)
        payload = GroupCallStarted(
            group_id=call.group_id,
            type=call.call_type,
            participants=list(call.participants),
            started_by=self._profile(user_id),
            started_at=call.started_at,
        )
        await self._notify_group(call.group_id, events.GROUP_CALL_STARTED, payload)

    async def _on_join_group_call(self, user_id: str, message: GroupRef) -> None:
        if not self._check_member(message.group_id, user_id, events.JOIN_GROUP_CALL):
            return
        call = self.rosters.get(message.group_id)
        if call is None:
            logger.warning(f"{user_id} tried to join missing group call in {message.group_id}")
            return
        if not call.add(user_id):
            logger.debug(f"{user_id} already in group call {message.group_id}")
        logger.info(
            f"{user_id} joined group call in {call.group_id}, participants: {len(call.participants)}"
        )
        payload = GroupParticipantChange(
            group_id=call.group_id,
            participant=self._profile(user_id),
            participants=list(call.participants),
            started_by=call.started_by,
        )
        await self._notify_group(call.group_id, events.GROUP_PARTICIPANT_JOINED, payload)

    async def _on_leave_group_call(self, user_id: str, message: GroupRef) -> None:
        call = self.rosters.get(message.group_id)
        if call is None or user_id not in call.participants:
            logger.debug(f"Ignoring leave from {user_id} for {message.group_id}")
            return
        await self._remove_participant(call, user_id)

    async def _on_end_group_call(self, user_id: str, message: GroupRef) -> None:
        call = self.rosters.get(message.group_id)
        if call is None:
            logger.debug(f"Ignoring end for {message.group_id} with no live call")
            return
        if user_id not in call.participants:
            logger.warning(f"{user_id} is not in the group call in {message.group_id}; end ignored")
            return
        self.rosters.discard(call.group_id)
        await self._notify_group(call.group_id, events.GROUP_CALL_ENDED, GroupRef(group_id=call.group_id))

    def _on_group_signal(self, event: str) -> _Handler:
        async def forward(user_id: str, message: GroupSignal) -> None:
            target = message.target_user_id
            if not (
                self.directory.is_group_member(message.group_id, user_id)
                and self.directory.is_group_member(message.group_id, target)
            ):
                logger.warning(f"Dropping {event} {user_id} -> {target} outside group {message.group_id}")
                return
            await self._forward(target, event, message.model_copy(update={"from_": user_id}))

        return forward

    async def _remove_participant(self, call: ActiveGroupCall, user_id: str) -> None:
        call.remove(user_id)
        logger.info(
            f"{user_id} left group call in {call.group_id}, participants: {len(call.participants)}"
        )
        payload = GroupParticipantChange(
            group_id=call.group_id,
            participant=self._profile(user_id),
            participants=list(call.participants),
        )
        await self._notify_group(call.group_id, events.GROUP_PARTICIPANT_LEFT, payload)
        if call.is_empty:
            self.rosters.discard(call.group_id)
            await self._notify_group(
                call.group_id, events.GROUP_CALL_ENDED, GroupRef(group_id=call.group_id)
            )

    async def _notify_group(self, group_id: str, event: str, message: WireModel) -> None:
        group = self.directory.get_group(group_id)
        if group is None:
            return
        payload = message.to_wire()
        for member_id in group.members:
            await self.relay.send_to_user(member_id, event, payload)

    def _check_member(self, group_id: str, user_id: str, event: str) -> bool:
        if self.directory.get_group(group_id) is None:
            logger.warning(f"Dropping {event} from {user_id}: unknown group {group_id}")
            return False
        if not self.directory.is_group_member(group_id, user_id):
            logger.warning(f"Dropping {event} from {user_id}: not a member of {group_id}")
            return False
        return True

    def _profile(self, user_id: str) -> UserProfile:
        return self.directory.get_user(user_id) or UserProfile(id=user_id, display_name=user_id)
