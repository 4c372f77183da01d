"""Peer connection contracts (protocols).

Offers, answers and candidates are opaque JSON objects; negotiation, ICE and
media transport are the implementation's concern.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from chat_signaling.domain.contracts.media_devices import MediaStreamProtocol
from chat_signaling.domain.models.signaling_messages import Candidate, SessionDescription

CandidateCallback = Callable[[Candidate], Awaitable[None]]
ConnectedCallback = Callable[[], Awaitable[None]]


class PeerConnectionProtocol(Protocol):
    """One peer connection to one remote participant."""

    def add_stream(self, stream: MediaStreamProtocol) -> None:
        """Attach every track of a local stream."""
        ...

    async def create_offer(self) -> SessionDescription:
        """Create an offer."""
        ...

    async def create_answer(self) -> SessionDescription:
        """Create an answer to the applied remote offer."""
        ...

    async def set_local_description(self, description: SessionDescription) -> None:
        """Apply a local description."""
        ...

    async def set_remote_description(self, description: SessionDescription) -> None:
        """Apply a remote description."""
        ...

    async def add_ice_candidate(self, candidate: Candidate) -> None:
        """Apply a remote candidate. Requires a remote description."""
        ...

    def close(self) -> None:
        """Close the transport and release its resources."""
        ...


class PeerConnectionFactoryProtocol(Protocol):
    """Creates peer connections wired to the coordinator's callbacks."""

    def create(
        self,
        peer_id: str,
        on_ice_candidate: CandidateCallback,
        on_connected: ConnectedCallback,
    ) -> PeerConnectionProtocol:
        """Create a peer connection towards ``peer_id``.

        Args:
            peer_id: The remote user id.
            on_ice_candidate: Awaited for every locally discovered candidate.
            on_connected: Awaited once the transport is connected.
        """
        ...
