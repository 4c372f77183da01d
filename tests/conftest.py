"""Shared fakes for coordinator and signaling tests."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from typing import Any

import pytest

from chat_signaling.adapters.directory import InMemoryUserDirectory
from chat_signaling.adapters.web import InMemoryPresenceRegistry
from chat_signaling.adapters.web.broadcasters import PresenceBroadcaster
from chat_signaling.application.services.call_coordinator import CallCoordinator
from chat_signaling.application.services.client_router import ClientSignalingRouter
from chat_signaling.application.services.group_call_coordinator import GroupCallCoordinator
from chat_signaling.application.services.media_acquisition import MediaAcquirer
from chat_signaling.application.services.signaling_service import SignalingService
from chat_signaling.domain.errors import MediaAcquisitionError, MediaFailureKind
from chat_signaling.domain.models import GroupInfo, UserProfile


class RecordingChannel:
    """Signaling channel that records every emitted event."""

    def __init__(self) -> None:
        self.emitted: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        self.emitted.append((event, payload))

    def events(self) -> list[str]:
        return [event for event, _ in self.emitted]

    def payloads(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.emitted if name == event]


class FakeStream:
    def __init__(self, has_video: bool) -> None:
        self.has_video = has_video
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeMediaDevices:
    """Capture devices whose audio and video failures can be scripted."""

    def __init__(
        self,
        video_failure: MediaFailureKind | None = None,
        audio_failure: MediaFailureKind | None = None,
    ) -> None:
        self.video_failure = video_failure
        self.audio_failure = audio_failure
        self.requests: list[tuple[bool, bool]] = []
        self.streams: list[FakeStream] = []

    async def get_user_media(self, *, audio: bool, video: bool) -> FakeStream:
        self.requests.append((audio, video))
        if video and self.video_failure is not None:
            raise MediaAcquisitionError(self.video_failure)
        if audio and self.audio_failure is not None:
            raise MediaAcquisitionError(self.audio_failure)
        stream = FakeStream(has_video=video)
        self.streams.append(stream)
        return stream


class FakePeerConnection:
    """Peer connection that records negotiation and enforces candidate ordering rules."""

    def __init__(self, peer_id: str, on_ice_candidate: Any, on_connected: Any) -> None:
        self.peer_id = peer_id
        self.on_ice_candidate = on_ice_candidate
        self.on_connected = on_connected
        self.streams: list[Any] = []
        self.local_description: dict[str, Any] | None = None
        self.remote_description: dict[str, Any] | None = None
        self.applied_candidates: list[dict[str, Any]] = []
        self.closed = False

    def add_stream(self, stream: Any) -> None:
        self.streams.append(stream)

    async def create_offer(self) -> dict[str, Any]:
        return {"type": "offer", "sdp": f"offer-to-{self.peer_id}"}

    async def create_answer(self) -> dict[str, Any]:
        if self.remote_description is None:
            raise RuntimeError("create_answer without remote offer")
        return {"type": "answer", "sdp": f"answer-to-{self.peer_id}"}

    async def set_local_description(self, description: dict[str, Any]) -> None:
        self.local_description = description

    async def set_remote_description(self, description: dict[str, Any]) -> None:
        self.remote_description = description

    async def add_ice_candidate(self, candidate: dict[str, Any]) -> None:
        if self.remote_description is None:
            raise RuntimeError("candidate applied before remote description")
        self.applied_candidates.append(candidate)

    def close(self) -> None:
        self.closed = True

    async def discover_candidate(self, candidate: dict[str, Any]) -> None:
        """Simulate the ICE agent finding a local candidate."""
        await self.on_ice_candidate(candidate)

    async def connect(self) -> None:
        """Simulate the transport reaching the connected state."""
        await self.on_connected()


class FakePeerFactory:
    def __init__(self) -> None:
        self.created: list[FakePeerConnection] = []

    def create(self, peer_id: str, on_ice_candidate: Any, on_connected: Any) -> FakePeerConnection:
        connection = FakePeerConnection(peer_id, on_ice_candidate, on_connected)
        self.created.append(connection)
        return connection

    def latest(self, peer_id: str) -> FakePeerConnection:
        return [c for c in self.created if c.peer_id == peer_id][-1]


class RecordingListener:
    """Call listener that records every notification."""

    def __init__(self) -> None:
        self.states: list[Any] = []
        self.incoming: list[tuple[UserProfile, Any]] = []
        self.ended: list[Any] = []
        self.failures: list[Exception] = []
        self.notices: list[Any] = []
        self.phases: list[tuple[str, Any]] = []
        self.rosters: list[tuple[str, list[str]]] = []

    def on_call_state_changed(self, state: Any) -> None:
        self.states.append(state)

    def on_incoming_call(self, caller: UserProfile, call_type: Any) -> None:
        self.incoming.append((caller, call_type))

    def on_call_ended(self, reason: Any) -> None:
        self.ended.append(reason)

    def on_call_failed(self, error: Exception) -> None:
        self.failures.append(error)

    def on_notice(self, notice: Any) -> None:
        self.notices.append(notice)

    def on_group_call_phase_changed(self, group_id: str, phase: Any) -> None:
        self.phases.append((group_id, phase))

    def on_group_roster_changed(self, group_id: str, participants: list[str]) -> None:
        self.rosters.append((group_id, list(participants)))


class StaticMembership:
    def __init__(self, groups: dict[str, set[str]]) -> None:
        self.groups = groups

    def is_group_member(self, group_id: str, user_id: str) -> bool:
        return user_id in self.groups.get(group_id, set())


class LoopbackClient:
    """One connected client: coordinators, router and fakes."""

    def __init__(
        self,
        network: LoopbackNetwork,
        user_id: str,
        handle: str,
        devices: FakeMediaDevices,
        answer_timeout_seconds: float,
    ) -> None:
        self.network = network
        self.user_id = user_id
        self.handle = handle
        self.devices = devices
        self.peers = FakePeerFactory()
        self.listener = RecordingListener()
        self.calls = CallCoordinator(
            user_id,
            self,
            MediaAcquirer(devices),
            self.peers,
            self.listener,
            answer_timeout_seconds=answer_timeout_seconds,
        )
        self.group_calls = GroupCallCoordinator(
            user_id, self, MediaAcquirer(devices), self.peers, network.directory, self.listener
        )
        self.router = ClientSignalingRouter(self.calls, self.group_calls)
        self.received: list[tuple[str, Any]] = []

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        self.network.frames.append(("up", self.handle, event, payload))


class LoopbackNetwork:
    """In-process server plus clients, delivering frames FIFO on ``drain()``."""

    def __init__(self, directory: InMemoryUserDirectory) -> None:
        self.directory = directory
        self.presence = InMemoryPresenceRegistry()
        self.service = SignalingService(
            presence=self.presence,
            relay=self,
            presence_broadcaster=PresenceBroadcaster(self),
            directory=directory,
        )
        self.clients: dict[str, LoopbackClient] = {}
        self.frames: deque[tuple[str, str, str, Any]] = deque()
        self._counter = 0

    async def connect(
        self,
        user_id: str,
        devices: FakeMediaDevices | None = None,
        answer_timeout_seconds: float = 30.0,
    ) -> LoopbackClient:
        self._counter += 1
        handle = f"{user_id}#{self._counter}"
        client = LoopbackClient(
            self, user_id, handle, devices or FakeMediaDevices(), answer_timeout_seconds
        )
        self.clients[handle] = client
        await self.service.connect(user_id, handle)
        await self.drain()
        return client

    async def disconnect(self, client: LoopbackClient) -> None:
        self.clients.pop(client.handle, None)
        await self.service.disconnect(client.handle)
        await self.drain()

    async def send(self, handle: str, event: str, payload: Any) -> bool:
        if handle not in self.clients:
            return False
        self.frames.append(("down", handle, event, payload))
        return True

    async def send_to_user(self, user_id: str, event: str, payload: Any) -> int:
        delivered = 0
        for handle in sorted(self.presence.resolve(user_id)):
            if await self.send(handle, event, payload):
                delivered += 1
        return delivered

    async def broadcast(self, event: str, payload: Any) -> int:
        delivered = 0
        for handle in list(self.clients):
            if await self.send(handle, event, payload):
                delivered += 1
        return delivered

    async def drain(self) -> None:
        while self.frames:
            direction, handle, event, payload = self.frames.popleft()
            client = self.clients.get(handle)
            if direction == "up":
                if client is None:
                    continue
                await self.service.handle(client.user_id, handle, event, payload)
            elif client is not None:
                client.received.append((event, payload))
                await client.router.dispatch(event, payload)


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def devices() -> FakeMediaDevices:
    return FakeMediaDevices()


@pytest.fixture
def peer_factory() -> FakePeerFactory:
    return FakePeerFactory()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def make_devices() -> Callable[..., FakeMediaDevices]:
    return FakeMediaDevices


@pytest.fixture
def make_membership() -> Callable[[dict[str, set[str]]], StaticMembership]:
    return StaticMembership


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory(
        users=[
            UserProfile(id="alice", display_name="Alice", avatar="a.png"),
            UserProfile(id="bob", display_name="Bob"),
            UserProfile(id="carol", display_name="Carol"),
            UserProfile(id="dave", display_name="Dave"),
        ],
        groups=[GroupInfo(id="team", name="Team", members=("alice", "bob", "carol"))],
        allow_unknown_users=False,
    )


@pytest.fixture
def network(directory: InMemoryUserDirectory) -> LoopbackNetwork:
    return LoopbackNetwork(directory)
