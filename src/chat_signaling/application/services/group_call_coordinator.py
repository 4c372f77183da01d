"""Full-mesh group call coordinator.

Each participant keeps one ``PeerLink`` per other participant. Which side of
a pair sends the offer is decided by ``mesh_policy.should_originate``, so a
pair never negotiates twice. Links are created lazily: on ``join`` towards the
participants already present, on ``on_participant_joined`` towards newcomers
(and, on the echo of the local join, towards any roster peer still unlinked),
and on ``on_offer`` for the answering side.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from chat_signaling.application.services.call_listener import NullCallListener
from chat_signaling.application.services.mesh_policy import peers_to_offer, should_originate
from chat_signaling.application.services.sessions import GroupCallSession, PeerLink
from chat_signaling.domain.errors import (
    InvalidCallStateError,
    MediaAcquisitionError,
    NotAMemberError,
    StaleSignalError,
)
from chat_signaling.domain.models import CallType, GroupCallPhase, PeerSignalingState
from chat_signaling.domain.models import signaling_events as events
from chat_signaling.domain.models.signaling_messages import GroupRef, GroupSignal, StartGroupCall

if TYPE_CHECKING:
    from chat_signaling.application.services.media_acquisition import MediaAcquirer
    from chat_signaling.domain.contracts.call_listener import CallListenerProtocol
    from chat_signaling.domain.contracts.peer_connection import PeerConnectionFactoryProtocol
    from chat_signaling.domain.contracts.signaling_channel import SignalingChannelProtocol
    from chat_signaling.domain.contracts.user_directory import GroupMembershipProtocol
    from chat_signaling.domain.models import Candidate, SessionDescription

logger = logging.getLogger(__name__)


class GroupCallCoordinator:
    """Coordinates the local side of mesh group calls."""

    def __init__(
        self,
        self_id: str,
        channel: SignalingChannelProtocol,
        media: MediaAcquirer,
        peer_factory: PeerConnectionFactoryProtocol,
        membership: GroupMembershipProtocol,
        listener: CallListenerProtocol | None = None,
    ) -> None:
        self.self_id = self_id
        self.channel = channel
        self.media = media
        self.peer_factory = peer_factory
        self.membership = membership
        self.listener: CallListenerProtocol = listener or NullCallListener()
        self.session: GroupCallSession | None = None
        self.phase = GroupCallPhase.IDLE

    # ------------------------------------------------------------------
    # Local operations
    # ------------------------------------------------------------------

    async def start(self, group_id: str, call_type: CallType | str) -> None:
        """Start a group call and notify the other members.

        Raises:
            NotAMemberError: If the local user is not in the group.
            InvalidCallStateError: If already in or ringing for a group call.
            MediaAcquisitionError: If local media could not be acquired.
        """
        call_type = CallType(call_type)
        if not self.membership.is_group_member(group_id, self.self_id):
            raise NotAMemberError(self.self_id, group_id)
        if self.session is not None:
            raise InvalidCallStateError(f"Already {self.phase} in group call {self.session.group_id}")

        try:
            acquired = await self.media.acquire(call_type)
        except MediaAcquisitionError as e:
            self.listener.on_call_failed(e)
            raise
        if acquired.notice is not None:
            self.listener.on_notice(acquired.notice)

        session = GroupCallSession(
            group_id=group_id,
            call_type=acquired.call_type,
            started_by=self.self_id,
            participants=[self.self_id],
            stream=acquired.stream,
        )
        self.session = session
        self._set_phase(GroupCallPhase.JOINED)
        await self.channel.emit(
            events.START_GROUP_CALL,
            StartGroupCall(group_id=group_id, type=acquired.call_type).to_wire(),
        )
        logger.info(f"Started {acquired.call_type} group call in {group_id}")

    async def join(self, group_id: str) -> None:
        """Join the ringing group call and offer to the peers this side originates to.

        Raises:
            InvalidCallStateError: If no call is ringing for ``group_id``.
            MediaAcquisitionError: If local media could not be acquired.
        """
        session = self.session
        if session is None or session.group_id != group_id or self.phase is not GroupCallPhase.RINGING:
            raise InvalidCallStateError(f"No ringing group call for {group_id}")

        if session.stream is None:
            try:
                acquired = await self.media.acquire(session.call_type)
            except MediaAcquisitionError as e:
                self.listener.on_call_failed(e)
                raise
            if self.session is not session:
                acquired.stream.stop()
                return
            session.stream = acquired.stream
            if acquired.notice is not None:
                self.listener.on_notice(acquired.notice)

        session.add_participant(self.self_id)
        self._set_phase(GroupCallPhase.JOINED)
        await self.channel.emit(events.JOIN_GROUP_CALL, GroupRef(group_id=group_id).to_wire())

        for peer_id in peers_to_offer(self.self_id, session.participants):
            await self._originate(session, peer_id)

    async def leave(self) -> None:
        """Tear down every link and local media. A no-op without a group call.

        ``leave-group-call`` is only relayed once joined; leaving while the
        call is just ringing dismisses it locally.
        """
        session = self.session
        if session is None:
            return
        was_joined = self.phase is GroupCallPhase.JOINED
        self._teardown(session)
        if was_joined:
            await self.channel.emit(
                events.LEAVE_GROUP_CALL, GroupRef(group_id=session.group_id).to_wire()
            )
        logger.info(f"Left group call in {session.group_id}")

    async def end(self) -> None:
        """End the call for everyone, then leave. A no-op without a group call."""
        session = self.session
        if session is None:
            return
        await self.channel.emit(events.END_GROUP_CALL, GroupRef(group_id=session.group_id).to_wire())
        await self.leave()

    async def relay_candidate(self, to: str, candidate: Candidate) -> None:
        """Send a locally discovered candidate to one peer.

        Raises:
            InvalidCallStateError: If there is no link to ``to``.
        """
        session = self.session
        if session is None or to not in session.per_peer:
            raise InvalidCallStateError(f"No group link to {to}")
        await self.channel.emit(
            events.GROUP_ICE_CANDIDATE,
            GroupSignal(group_id=session.group_id, target_user_id=to, candidate=candidate).to_wire(),
        )

    # ------------------------------------------------------------------
    # Relayed events
    # ------------------------------------------------------------------

    async def notify_started(
        self,
        group_id: str,
        call_type: CallType | str,
        participants: list[str],
        started_by: str,
        started_at: datetime | None = None,
    ) -> None:
        """A group call started in one of the local user's groups.

        No PeerLink is created here; links are made once someone joins.
        """
        call_type = CallType(call_type)
        session = self.session
        if session is not None:
            if session.group_id == group_id:
                session.set_participants(participants)
                if self.phase is GroupCallPhase.JOINED:
                    session.add_participant(self.self_id)
                self.listener.on_group_roster_changed(group_id, session.participants)
            else:
                logger.info(f"Ignoring group call in {group_id} while busy in {session.group_id}")
            return

        self.session = GroupCallSession(
            group_id=group_id,
            call_type=call_type,
            started_by=started_by,
            started_at=started_at or datetime.now(UTC),
            participants=list(dict.fromkeys(participants)),
        )
        self._set_phase(GroupCallPhase.RINGING)

    async def on_participant_joined(
        self,
        group_id: str,
        participant_id: str,
        participants: list[str],
        started_by: str | None = None,
    ) -> None:
        """Update the roster and originate to the peers this side must offer to.

        The echo of the local user's own join carries the server roster. A
        ``start`` that the server turned into a join learns the other
        participants only here, so any peer still without a link is offered to.

        Raises:
            StaleSignalError: If there is no session for ``group_id``.
        """
        session = self._require_session(group_id, "group-participant-joined")
        session.set_participants(participants)
        if self.phase is GroupCallPhase.JOINED:
            session.add_participant(self.self_id)
        session.add_participant(participant_id)
        if started_by is not None:
            session.started_by = started_by
        self.listener.on_group_roster_changed(group_id, session.participants)

        if self.phase is not GroupCallPhase.JOINED:
            return
        if participant_id == self.self_id:
            for peer_id in peers_to_offer(self.self_id, session.participants):
                if peer_id not in session.per_peer:
                    await self._originate(session, peer_id)
        elif should_originate(self.self_id, participant_id) and participant_id not in session.per_peer:
            await self._originate(session, participant_id)

    async def on_participant_left(
        self, group_id: str, participant_id: str, participants: list[str]
    ) -> None:
        """Drop the roster entry and everything tied to that peer.

        Raises:
            StaleSignalError: If there is no session for ``group_id``.
        """
        session = self._require_session(group_id, "group-participant-left")
        session.set_participants([p for p in participants if p != participant_id])
        if self.phase is GroupCallPhase.JOINED:
            session.add_participant(self.self_id)
        if participant_id != self.self_id and session.drop_peer(participant_id):
            logger.info(f"Closed link to {participant_id} who left {group_id}")
        self.listener.on_group_roster_changed(group_id, session.participants)

    async def on_call_ended(self, group_id: str) -> None:
        """The call was ended for everyone.

        Raises:
            StaleSignalError: If there is no session for ``group_id``.
        """
        session = self._require_session(group_id, "group-call-ended")
        self._teardown(session)
        logger.info(f"Group call in {group_id} ended")

    async def on_offer(self, group_id: str, from_id: str, offer: SessionDescription) -> None:
        """Answer a peer's offer.

        An offer from a peer this side originates to is the simultaneous-join
        race and is discarded.

        Raises:
            StaleSignalError: If not joined to ``group_id``.
        """
        session = self._require_joined(group_id, "group-offer")
        link = session.per_peer.get(from_id)
        if link is not None and link.originated:
            logger.info(f"Discarding colliding offer from {from_id}; this side originates")
            return
        if link is None:
            link = self._create_link(session, from_id, originated=False)
        session.add_participant(from_id)

        connection = link.connection
        try:
            await connection.set_remote_description(offer)
            link.signaling_state = PeerSignalingState.HAVE_REMOTE_OFFER
            answer = await connection.create_answer()
            await connection.set_local_description(answer)
        except Exception:
            logger.exception(f"Failed to answer group offer from {from_id}")
            return
        if session.per_peer.get(from_id) is not link:
            return

        link.signaling_state = PeerSignalingState.STABLE
        await self.channel.emit(
            events.GROUP_ANSWER,
            GroupSignal(group_id=group_id, target_user_id=from_id, answer=answer).to_wire(),
        )
        await link.pending_candidates.remote_description_applied(connection.add_ice_candidate)

    async def on_answer(self, group_id: str, from_id: str, answer: SessionDescription) -> None:
        """Apply a peer's answer to the offer this side sent.

        Raises:
            StaleSignalError: If there is no outstanding offer to ``from_id``.
        """
        session = self._require_joined(group_id, "group-answer")
        link = session.per_peer.get(from_id)
        if link is None or link.signaling_state is not PeerSignalingState.HAVE_LOCAL_OFFER:
            raise StaleSignalError(f"group-answer from {from_id} without an outstanding offer")

        try:
            await link.connection.set_remote_description(answer)
        except Exception:
            logger.exception(f"Failed to apply group answer from {from_id}")
            return
        if session.per_peer.get(from_id) is not link:
            return
        link.signaling_state = PeerSignalingState.STABLE
        await link.pending_candidates.remote_description_applied(link.connection.add_ice_candidate)

    async def on_candidate(self, group_id: str, from_id: str, candidate: Candidate) -> None:
        """Queue or apply a peer's candidate.

        Candidates that arrive before any link to the peer exists are held and
        handed to the link when it is created.

        Raises:
            StaleSignalError: If not joined to ``group_id``.
        """
        session = self._require_joined(group_id, "group-ice-candidate")
        link = session.per_peer.get(from_id)
        if link is None:
            session.early_candidates.setdefault(from_id, deque()).append(candidate)
            logger.debug(f"Holding candidate from {from_id} until a link exists")
            return
        await link.pending_candidates.add(candidate)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _create_link(self, session: GroupCallSession, peer_id: str, originated: bool) -> PeerLink:
        async def on_ice_candidate(candidate: Candidate) -> None:
            if session.per_peer.get(peer_id) is not link:
                return
            await self.relay_candidate(peer_id, candidate)

        async def on_connected() -> None:
            logger.info(f"Group link to {peer_id} connected")

        connection = self.peer_factory.create(peer_id, on_ice_candidate, on_connected)
        if session.stream is not None:
            connection.add_stream(session.stream)
        link = PeerLink(peer_id=peer_id, connection=connection, originated=originated)
        session.per_peer[peer_id] = link
        link.pending_candidates.hold(session.early_candidates.pop(peer_id, ()))
        return link

    async def _originate(self, session: GroupCallSession, peer_id: str) -> None:
        link = self._create_link(session, peer_id, originated=True)
        try:
            offer = await link.connection.create_offer()
            await link.connection.set_local_description(offer)
        except Exception:
            logger.exception(f"Failed to create group offer for {peer_id}")
            session.drop_peer(peer_id)
            return
        if session.per_peer.get(peer_id) is not link:
            return
        link.signaling_state = PeerSignalingState.HAVE_LOCAL_OFFER
        await self.channel.emit(
            events.GROUP_OFFER,
            GroupSignal(group_id=session.group_id, target_user_id=peer_id, offer=offer).to_wire(),
        )

    def _teardown(self, session: GroupCallSession) -> None:
        session.release()
        if self.session is session:
            self.session = None
        self._set_phase(GroupCallPhase.IDLE, session.group_id)

    def _set_phase(self, phase: GroupCallPhase, group_id: str | None = None) -> None:
        self.phase = phase
        group_id = group_id or (self.session.group_id if self.session else "")
        self.listener.on_group_call_phase_changed(group_id, phase)

    def _require_session(self, group_id: str, event: str) -> GroupCallSession:
        session = self.session
        if session is None or session.group_id != group_id:
            raise StaleSignalError(f"{event} for {group_id} with no matching group call")
        return session

    def _require_joined(self, group_id: str, event: str) -> GroupCallSession:
        session = self._require_session(group_id, event)
        if self.phase is not GroupCallPhase.JOINED:
            raise StaleSignalError(f"{event} for {group_id} while {self.phase}")
        return session
