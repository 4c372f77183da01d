"""Routes server events on a client to the call coordinators."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from chat_signaling.domain.errors import StaleSignalError
from chat_signaling.domain.models import signaling_events as events
from chat_signaling.domain.models.signaling_messages import (
    CallAccepted,
    ErrorMessage,
    FromOnly,
    GroupCallStarted,
    GroupParticipantChange,
    GroupRef,
    GroupSignal,
    IceCandidateIn,
    IncomingCall,
    UserLastSeenUpdate,
    WireModel,
)
from chat_signaling.domain.ports import SignalingEventSink

if TYPE_CHECKING:
    from chat_signaling.application.services.call_coordinator import CallCoordinator
    from chat_signaling.application.services.group_call_coordinator import GroupCallCoordinator

logger = logging.getLogger(__name__)


class ClientSignalingRouter(SignalingEventSink):
    """Dispatches each server event to the matching coordinator handler.

    Events are handled one at a time, to completion, in arrival order. Stale
    signals (answers for calls that already ended, candidates for closed links)
    are logged and dropped.
    """

    def __init__(self, calls: CallCoordinator, group_calls: GroupCallCoordinator) -> None:
        self.calls = calls
        self.group_calls = group_calls
        self.last_seen: dict[str, datetime] = {}
        self._handlers: dict[str, tuple[type[WireModel] | None, Callable[[Any], Awaitable[None]]]] = {
            events.ONLINE_USERS: (None, self._on_online_users),
            events.USER_LAST_SEEN_UPDATE: (UserLastSeenUpdate, self._on_last_seen),
            events.ERROR: (ErrorMessage, self._on_error),
            events.INCOMING_CALL: (IncomingCall, self._on_incoming_call),
            events.CALL_ACCEPTED: (CallAccepted, self._on_call_accepted),
            events.CALL_REJECTED: (FromOnly, self._on_call_rejected),
            events.ICE_CANDIDATE: (IceCandidateIn, self._on_ice_candidate),
            events.CALL_ENDED: (FromOnly, self._on_call_ended),
            events.GROUP_CALL_STARTED: (GroupCallStarted, self._on_group_call_started),
            events.GROUP_PARTICIPANT_JOINED: (GroupParticipantChange, self._on_participant_joined),
            events.GROUP_PARTICIPANT_LEFT: (GroupParticipantChange, self._on_participant_left),
            events.GROUP_CALL_ENDED: (GroupRef, self._on_group_call_ended),
            events.GROUP_OFFER: (GroupSignal, self._on_group_offer),
            events.GROUP_ANSWER: (GroupSignal, self._on_group_answer),
            events.GROUP_ICE_CANDIDATE: (GroupSignal, self._on_group_candidate),
        }

    async def dispatch(self, event: str, payload: Any) -> None:
        entry = self._handlers.get(event)
        if entry is None:
            logger.debug(f"Ignoring unhandled server event '{event}'")
            return

        model, handler = entry
        if model is None:
            message = payload
        else:
            try:
                message = model.model_validate(payload or {})
            except ValidationError as e:
                logger.warning(f"Dropping malformed '{event}': {e.error_count()} error(s)")
                return

        try:
            await handler(message)
        except StaleSignalError as e:
            logger.debug(f"Dropped stale '{event}': {e}")

    async def _on_online_users(self, payload: Any) -> None:
        if not isinstance(payload, list):
            logger.warning(f"Dropping malformed '{events.ONLINE_USERS}' payload")
            return
        self.calls.online_users = {str(user_id) for user_id in payload}
        logger.debug(f"Online users: {len(self.calls.online_users)}")

    async def _on_last_seen(self, message: UserLastSeenUpdate) -> None:
        self.last_seen[message.user_id] = message.last_seen

    async def _on_error(self, message: ErrorMessage) -> None:
        logger.warning(f"Server reported error: {message.message}")

    async def _on_incoming_call(self, message: IncomingCall) -> None:
        await self.calls.on_incoming(message.from_, message.offer, message.type)

    async def _on_call_accepted(self, message: CallAccepted) -> None:
        await self.calls.on_accepted(message.answer, message.from_)

    async def _on_call_rejected(self, message: FromOnly) -> None:
        await self.calls.on_rejected(message.from_)

    async def _on_ice_candidate(self, message: IceCandidateIn) -> None:
        await self.calls.on_candidate(message.candidate, message.from_)

    async def _on_call_ended(self, message: FromOnly) -> None:
        await self.calls.on_remote_ended(message.from_)

    async def _on_group_call_started(self, message: GroupCallStarted) -> None:
        await self.group_calls.notify_started(
            message.group_id,
            message.type,
            message.participants,
            message.started_by.id,
            message.started_at,
        )

    async def _on_participant_joined(self, message: GroupParticipantChange) -> None:
        await self.group_calls.on_participant_joined(
            message.group_id,
            message.participant.id,
            message.participants,
            message.started_by,
        )

    async def _on_participant_left(self, message: GroupParticipantChange) -> None:
        await self.group_calls.on_participant_left(
            message.group_id, message.participant.id, message.participants
        )

    async def _on_group_call_ended(self, message: GroupRef) -> None:
        await self.group_calls.on_call_ended(message.group_id)

    async def _on_group_offer(self, message: GroupSignal) -> None:
        if message.offer is None or message.from_ is None:
            logger.warning("Dropping group-offer without offer or sender")
            return
        await self.group_calls.on_offer(message.group_id, message.from_, message.offer)

    async def _on_group_answer(self, message: GroupSignal) -> None:
        if message.answer is None or message.from_ is None:
            logger.warning("Dropping group-answer without answer or sender")
            return
        await self.group_calls.on_answer(message.group_id, message.from_, message.answer)

    async def _on_group_candidate(self, message: GroupSignal) -> None:
        if message.candidate is None or message.from_ is None:
            logger.warning("Dropping group-ice-candidate without candidate or sender")
            return
        await self.group_calls.on_candidate(message.group_id, message.from_, message.candidate)
