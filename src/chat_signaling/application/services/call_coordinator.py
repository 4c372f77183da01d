"""One-to-one call coordinator.

Drives the local side of a call attempt through
``IDLE -> ORIGINATING | RINGING -> CONNECTING -> ACTIVE -> IDLE``. Every
rejection, timeout or hang-up returns to ``IDLE`` and is reported to the
listener as a ``CallEndReason``. Exactly one ``CallSession`` exists at a time.

The coordinator never waits for the counterpart: signaling events are emitted
fire-and-forget and responses arrive later through the ``on_*`` handlers,
which raise ``StaleSignalError`` for messages that no longer match the local
session.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from chat_signaling.application.services.call_listener import NullCallListener
from chat_signaling.application.services.sessions import CallSession
from chat_signaling.domain.errors import (
    CallTimeout,
    InvalidCallStateError,
    MediaAcquisitionError,
    SelfCallError,
    StaleSignalError,
)
from chat_signaling.domain.models import CALL_TRANSITIONS, CallEndReason, CallState, CallType
from chat_signaling.domain.models import signaling_events as events
from chat_signaling.domain.models.signaling_messages import (
    Addressed,
    AnswerCall,
    CallUser,
    IceCandidateOut,
)

if TYPE_CHECKING:
    from chat_signaling.application.services.media_acquisition import MediaAcquirer
    from chat_signaling.domain.contracts.call_listener import CallListenerProtocol
    from chat_signaling.domain.contracts.peer_connection import (
        PeerConnectionFactoryProtocol,
        PeerConnectionProtocol,
    )
    from chat_signaling.domain.contracts.signaling_channel import SignalingChannelProtocol
    from chat_signaling.domain.models import Candidate, SessionDescription, UserProfile

logger = logging.getLogger(__name__)

DEFAULT_ANSWER_TIMEOUT_SECONDS = 30.0

# States in which locally discovered candidates are relayed to the counterpart.
_CANDIDATE_RELAY_STATES = frozenset({CallState.ORIGINATING, CallState.RINGING, CallState.CONNECTING})


class CallCoordinator:
    """Coordinates one-to-one calls for the local user."""

    def __init__(
        self,
        self_id: str,
        channel: SignalingChannelProtocol,
        media: MediaAcquirer,
        peer_factory: PeerConnectionFactoryProtocol,
        listener: CallListenerProtocol | None = None,
        answer_timeout_seconds: float = DEFAULT_ANSWER_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the coordinator.

        Args:
            self_id: The local user's id.
            channel: Channel used to emit signaling events.
            media: Acquires local media with the fallback policy.
            peer_factory: Creates peer connections.
            listener: Receives state changes, notices and failures.
            answer_timeout_seconds: How long an originated call may go unanswered.
        """
        self.self_id = self_id
        self.channel = channel
        self.media = media
        self.peer_factory = peer_factory
        self.listener: CallListenerProtocol = listener or NullCallListener()
        self.answer_timeout_seconds = answer_timeout_seconds
        self.session: CallSession | None = None
        self.online_users: set[str] = set()
        self._retry_request: tuple[str, CallType] | None = None

    @property
    def state(self) -> CallState:
        return self.session.state if self.session is not None else CallState.IDLE

    @property
    def can_retry(self) -> bool:
        return self._retry_request is not None

    # ------------------------------------------------------------------
    # Local operations
    # ------------------------------------------------------------------

    async def initiate(self, target_id: str, call_type: CallType | str) -> None:
        """Start a call to ``target_id``.

        The target's reachability is only logged: an offline user may come back
        before the answer timeout expires.

        Raises:
            SelfCallError: If ``target_id`` is the local user.
            InvalidCallStateError: If a call session already exists.
            MediaAcquisitionError: If local media could not be acquired. Nothing
                has been relayed in that case; ``retry()`` is available when the
                failure is retryable.
        """
        call_type = CallType(call_type)
        if target_id == self.self_id:
            raise SelfCallError(self.self_id)
        if self.session is not None:
            raise InvalidCallStateError(f"Cannot start a call while {self.session.state}")

        if target_id not in self.online_users:
            logger.info(f"Calling {target_id} who is not online; relying on the answer timeout")

        self._retry_request = None
        session = CallSession(
            caller_id=self.self_id,
            callee_id=target_id,
            call_type=call_type,
            state=CallState.IDLE,
        )
        self.session = session
        self._transition(session, CallState.ORIGINATING)

        try:
            acquired = await self.media.acquire(call_type)
        except MediaAcquisitionError as e:
            if self.session is session:
                self._finish(session, CallEndReason.FAILED)
            if e.retryable:
                self._retry_request = (target_id, call_type)
            self.listener.on_call_failed(e)
            raise

        if self.session is not session:
            acquired.stream.stop()
            return
        session.stream = acquired.stream
        session.call_type = acquired.call_type
        if acquired.notice is not None:
            self.listener.on_notice(acquired.notice)

        connection = self._create_connection(session, target_id)
        connection.add_stream(acquired.stream)
        try:
            offer = await connection.create_offer()
            await connection.set_local_description(offer)
        except Exception:
            logger.exception(f"Failed to create offer for call to {target_id}")
            if self.session is session:
                self._finish(session, CallEndReason.FAILED)
            return
        if self.session is not session:
            return

        await self.channel.emit(
            events.CALL_USER,
            CallUser(to=target_id, offer=offer, type=session.call_type).to_wire(),
        )
        session.local_description_sent = True
        session.timeout_task = asyncio.create_task(self._answer_timeout(session))
        logger.info(f"Call to {target_id} ({session.call_type}) relayed, awaiting answer")

    async def accept(self) -> None:
        """Answer the ringing call.

        Raises:
            InvalidCallStateError: If no call is ringing.
            MediaAcquisitionError: If local media could not be acquired; the
                caller is sent a rejection.
        """
        session = self._require(CallState.RINGING, "accept")
        caller_id = session.caller_id
        offer = session.remote_offer
        if offer is None:
            raise InvalidCallStateError(f"Ringing call from {caller_id} carries no offer")

        try:
            acquired = await self.media.acquire(session.call_type)
        except MediaAcquisitionError as e:
            if self.session is session:
                self._finish(session, CallEndReason.FAILED)
                await self.channel.emit(events.REJECT_CALL, Addressed(to=caller_id).to_wire())
            self.listener.on_call_failed(e)
            raise

        if self.session is not session:
            acquired.stream.stop()
            return
        session.stream = acquired.stream
        session.call_type = acquired.call_type
        if acquired.notice is not None:
            self.listener.on_notice(acquired.notice)

        connection = self._create_connection(session, caller_id)
        connection.add_stream(acquired.stream)
        try:
            await connection.set_remote_description(offer)
            session.remote_description_received = True
            answer = await connection.create_answer()
            await connection.set_local_description(answer)
        except Exception:
            logger.exception(f"Failed to answer call from {caller_id}")
            if self.session is session:
                await self._end(session, CallEndReason.FAILED)
            return
        if self.session is not session:
            return

        self._transition(session, CallState.CONNECTING)
        await self.channel.emit(
            events.ANSWER_CALL, AnswerCall(to=caller_id, answer=answer).to_wire()
        )
        session.local_description_sent = True
        await session.pending_candidates.remote_description_applied(connection.add_ice_candidate)

    async def reject(self) -> None:
        """Decline the ringing call.

        Raises:
            InvalidCallStateError: If no call is ringing.
        """
        session = self._require(CallState.RINGING, "reject")
        self._finish(session, CallEndReason.DECLINED)
        await self.channel.emit(events.REJECT_CALL, Addressed(to=session.caller_id).to_wire())

    async def end(self) -> None:
        """Hang up. A no-op when there is no call."""
        session = self.session
        if session is None:
            logger.debug("end() with no active call ignored")
            return
        await self._end(session, CallEndReason.ENDED_LOCALLY)

    async def retry(self) -> None:
        """Replay the last ``initiate`` that failed with a retryable media error.

        Raises:
            InvalidCallStateError: If there is nothing to retry.
        """
        if self._retry_request is None:
            raise InvalidCallStateError("No failed call to retry")
        target_id, call_type = self._retry_request
        self._retry_request = None
        logger.info(f"Retrying call to {target_id}")
        await self.initiate(target_id, call_type)

    async def relay_candidate(self, candidate: Candidate) -> None:
        """Send a locally discovered candidate to the counterpart.

        Raises:
            InvalidCallStateError: Outside ORIGINATING, RINGING and CONNECTING.
        """
        session = self.session
        if session is None or session.state not in _CANDIDATE_RELAY_STATES:
            raise InvalidCallStateError(f"Cannot relay candidates while {self.state}")
        await self.channel.emit(
            events.ICE_CANDIDATE,
            IceCandidateOut(to=session.counterpart_of(self.self_id), candidate=candidate).to_wire(),
        )

    # ------------------------------------------------------------------
    # Relayed events
    # ------------------------------------------------------------------

    async def on_incoming(
        self, caller: UserProfile, offer: SessionDescription, call_type: CallType | str
    ) -> None:
        """Ring for an incoming call.

        A busy device ignores the call without answering: other devices of the
        same user may still pick it up.
        """
        call_type = CallType(call_type)
        if self.session is not None:
            logger.info(f"Busy ({self.session.state}); ignoring incoming call from {caller.id}")
            return

        session = CallSession(
            caller_id=caller.id,
            callee_id=self.self_id,
            call_type=call_type,
            state=CallState.IDLE,
            counterpart=caller,
            remote_offer=offer,
        )
        self.session = session
        self._transition(session, CallState.RINGING)
        self.listener.on_incoming_call(caller, call_type)

    async def on_accepted(self, answer: SessionDescription, from_id: str | None = None) -> None:
        """Apply the callee's answer.

        Raises:
            StaleSignalError: If no originated call is waiting for this answer.
        """
        session = self._require_signal(CallState.ORIGINATING, "call-accepted", from_id)
        connection = session.connection
        if connection is None:
            raise StaleSignalError(f"call-accepted from {from_id} before an offer was sent")
        if session.timeout_task is not None:
            session.timeout_task.cancel()
            session.timeout_task = None
        self._transition(session, CallState.CONNECTING)

        try:
            await connection.set_remote_description(answer)
        except Exception:
            logger.exception(f"Failed to apply answer from {session.callee_id}")
            if self.session is session:
                await self._end(session, CallEndReason.FAILED)
            return
        if self.session is not session:
            return
        session.remote_description_received = True
        await session.pending_candidates.remote_description_applied(connection.add_ice_candidate)

    async def on_rejected(self, from_id: str | None = None) -> None:
        """The callee declined.

        Raises:
            StaleSignalError: If no originated call is waiting.
        """
        session = self._require_signal(CallState.ORIGINATING, "call-rejected", from_id)
        logger.info(f"Call to {session.callee_id} rejected")
        self._finish(session, CallEndReason.REJECTED)

    async def on_candidate(self, candidate: Candidate, from_id: str | None = None) -> None:
        """Queue or apply a remote candidate.

        Raises:
            StaleSignalError: If there is no call with the sender.
        """
        session = self._require_signal(None, "ice-candidate", from_id)
        await session.pending_candidates.add(candidate)

    async def on_remote_ended(self, from_id: str | None = None) -> None:
        """The counterpart hung up.

        Raises:
            StaleSignalError: If there is no call with the sender.
        """
        session = self._require_signal(None, "call-ended", from_id)
        logger.info(f"Call with {session.counterpart_of(self.self_id)} ended by remote")
        self._finish(session, CallEndReason.ENDED_REMOTELY)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _create_connection(self, session: CallSession, peer_id: str) -> PeerConnectionProtocol:
        async def on_ice_candidate(candidate: Candidate) -> None:
            if self.session is not session or session.state not in _CANDIDATE_RELAY_STATES:
                logger.debug(f"Not relaying candidate to {peer_id} while {session.state}")
                return
            await self.relay_candidate(candidate)

        async def on_connected() -> None:
            if self.session is session and session.state is CallState.CONNECTING:
                self._transition(session, CallState.ACTIVE)

        connection = self.peer_factory.create(peer_id, on_ice_candidate, on_connected)
        session.connection = connection
        return connection

    async def _answer_timeout(self, session: CallSession) -> None:
        await asyncio.sleep(self.answer_timeout_seconds)
        if self.session is not session or session.state is not CallState.ORIGINATING:
            return
        logger.warning(
            f"Call to {session.callee_id} not answered within {self.answer_timeout_seconds}s"
        )
        # Detach so release() does not cancel the task running this code.
        session.timeout_task = None
        await self._end(session, CallEndReason.TIMED_OUT)
        self.listener.on_call_failed(CallTimeout(session.callee_id, self.answer_timeout_seconds))

    async def _end(self, session: CallSession, reason: CallEndReason) -> None:
        counterpart = session.counterpart_of(self.self_id)
        self._finish(session, reason)
        await self.channel.emit(events.END_CALL, Addressed(to=counterpart).to_wire())

    def _finish(self, session: CallSession, reason: CallEndReason) -> None:
        session.release()
        self._transition(session, CallState.IDLE)
        if self.session is session:
            self.session = None
        logger.info(f"Call {session.caller_id}->{session.callee_id} finished: {reason}")
        self.listener.on_call_ended(reason)

    def _transition(self, session: CallSession, new_state: CallState) -> None:
        if new_state not in CALL_TRANSITIONS[session.state]:
            raise InvalidCallStateError(f"Illegal call transition {session.state} -> {new_state}")
        logger.debug(f"Call state {session.state} -> {new_state}")
        session.state = new_state
        self.listener.on_call_state_changed(new_state)

    def _require(self, state: CallState, operation: str) -> CallSession:
        session = self.session
        if session is None or session.state is not state:
            raise InvalidCallStateError(f"Cannot {operation} while {self.state}")
        return session

    def _require_signal(
        self, state: CallState | None, event: str, from_id: str | None
    ) -> CallSession:
        session = self.session
        if session is None:
            raise StaleSignalError(f"{event} with no call in progress")
        if state is not None and session.state is not state:
            raise StaleSignalError(f"{event} while {session.state}")
        if from_id is not None and from_id != session.counterpart_of(self.self_id):
            raise StaleSignalError(f"{event} from {from_id} who is not the counterpart")
        return session
