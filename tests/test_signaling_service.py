"""Tests for the server-side signaling service."""

from unittest.mock import AsyncMock

import pytest

from chat_signaling.adapters.web import InMemoryPresenceRegistry
from chat_signaling.application.services.signaling_service import SignalingService
from chat_signaling.domain.models import signaling_events as events

OFFER = {"type": "offer", "sdp": "v=0"}


@pytest.fixture
def relay() -> AsyncMock:
    relay = AsyncMock()
    relay.send.return_value = True
    relay.send_to_user.return_value = 1
    relay.broadcast.return_value = 1
    return relay


@pytest.fixture
def broadcaster() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(relay, broadcaster, directory) -> SignalingService:
    return SignalingService(
        presence=InMemoryPresenceRegistry(),
        relay=relay,
        presence_broadcaster=broadcaster,
        directory=directory,
    )


def _sent_to(relay: AsyncMock, event: str) -> list[tuple[str, dict]]:
    """(user_id, payload) for every send_to_user call carrying ``event``."""
    return [
        (call.args[0], call.args[2])
        for call in relay.send_to_user.call_args_list
        if call.args[1] == event
    ]


# ---------------------------------------------------------------------------
# Presence lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_connect_broadcasts_online_users(service, broadcaster) -> None:
    """Given a new connection, then the online set is broadcast."""
    await service.connect("alice", "h1")

    broadcaster.broadcast_online_users.assert_awaited_once_with({"alice"})
    assert service.directory.last_seen("alice") is not None


@pytest.mark.asyncio
async def test_second_device_keeps_user_online(service, broadcaster) -> None:
    """Given two devices, when one disconnects, then no last-seen update is sent."""
    await service.connect("alice", "h1")
    await service.connect("alice", "h2")
    broadcaster.reset_mock()

    await service.disconnect("h1")

    broadcaster.broadcast_last_seen.assert_not_awaited()
    broadcaster.broadcast_online_users.assert_not_awaited()
    assert service.presence.is_online("alice") is True


@pytest.mark.asyncio
async def test_last_disconnect_announces_last_seen(service, broadcaster) -> None:
    """Given one device, when it disconnects, then last-seen and the online set are broadcast."""
    await service.connect("alice", "h1")
    await service.connect("bob", "h2")
    broadcaster.reset_mock()

    await service.disconnect("h1")

    user_id, last_seen = broadcaster.broadcast_last_seen.await_args.args
    assert user_id == "alice"
    assert last_seen == service.directory.last_seen("alice")
    broadcaster.broadcast_online_users.assert_awaited_once_with({"bob"})


@pytest.mark.asyncio
async def test_unknown_handle_disconnect_is_ignored(service, broadcaster) -> None:
    """Given an unregistered handle, when it disconnects, then nothing is broadcast."""
    await service.disconnect("nope")

    broadcaster.broadcast_online_users.assert_not_awaited()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unknown_event_gets_error(service, relay) -> None:
    """Given an unknown event, then an error is sent back to the sending connection."""
    await service.handle("alice", "h1", "teleport", {})

    relay.send.assert_awaited_once_with("h1", events.ERROR, {"message": "Unknown event: teleport"})


@pytest.mark.asyncio
async def test_malformed_payload_is_dropped(service, relay) -> None:
    """Given call-user without an offer, then nothing is relayed."""
    await service.handle("alice", "h1", events.CALL_USER, {"to": "bob", "type": "video"})

    relay.send_to_user.assert_not_awaited()
    relay.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_call_user_is_decorated_with_caller_profile(service, relay) -> None:
    """Given call-user, then the callee gets incoming-call with the caller's profile."""
    await service.handle(
        "alice", "h1", events.CALL_USER, {"to": "bob", "offer": OFFER, "type": "video"}
    )

    assert _sent_to(relay, events.INCOMING_CALL) == [
        (
            "bob",
            {
                "from": {"id": "alice", "displayName": "Alice", "avatar": "a.png"},
                "offer": OFFER,
                "type": "video",
            },
        )
    ]


@pytest.mark.asyncio
async def test_call_from_unknown_user_is_dropped(service, relay) -> None:
    """Given a caller missing from a strict directory, then the call is not relayed."""
    await service.handle(
        "mallory", "h9", events.CALL_USER, {"to": "bob", "offer": OFFER, "type": "audio"}
    )

    relay.send_to_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_self_call_is_dropped(service, relay) -> None:
    """Given call-user addressed to the caller, then nothing is relayed."""
    await service.handle(
        "alice", "h1", events.CALL_USER, {"to": "alice", "offer": OFFER, "type": "audio"}
    )

    relay.send_to_user.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("event", "payload", "forwarded_event", "forwarded"),
    [
        (
            events.ANSWER_CALL,
            {"to": "alice", "answer": {"type": "answer"}},
            events.CALL_ACCEPTED,
            {"answer": {"type": "answer"}, "from": "bob"},
        ),
        (events.REJECT_CALL, {"to": "alice"}, events.CALL_REJECTED, {"from": "bob"}),
        (events.END_CALL, {"to": "alice"}, events.CALL_ENDED, {"from": "bob"}),
        (
            events.ICE_CANDIDATE,
            {"to": "alice", "candidate": {"candidate": "c1"}},
            events.ICE_CANDIDATE,
            {"candidate": {"candidate": "c1"}, "from": "bob"},
        ),
    ],
)
async def test_call_signals_are_forwarded_with_sender(
    service, relay, event, payload, forwarded_event, forwarded
) -> None:
    """Given a one-to-one signal, then it is forwarded with the sender added."""
    await service.handle("bob", "h2", event, payload)

    assert _sent_to(relay, forwarded_event) == [("alice", forwarded)]


# ---------------------------------------------------------------------------
# Group calls
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_start_group_call_notifies_every_member(service, relay) -> None:
    """Given a member starting a call, then every member gets group-call-started."""
    await service.handle("alice", "h1", events.START_GROUP_CALL, {"groupId": "team", "type": "audio"})

    notified = _sent_to(relay, events.GROUP_CALL_STARTED)
    assert [user_id for user_id, _ in notified] == ["alice", "bob", "carol"]
    payload = notified[0][1]
    assert payload["groupId"] == "team"
    assert payload["participants"] == ["alice"]
    assert payload["startedBy"]["id"] == "alice"
    assert "startedAt" in payload


@pytest.mark.asyncio
async def test_non_member_cannot_start(service, relay) -> None:
    """Given a user outside the group, then start-group-call is dropped."""
    await service.handle("dave", "h4", events.START_GROUP_CALL, {"groupId": "team", "type": "audio"})

    relay.send_to_user.assert_not_awaited()
    assert service.rosters.get("team") is None


@pytest.mark.asyncio
async def test_second_start_is_treated_as_join(service, relay) -> None:
    """Given a live call, when another member starts, then they join the existing roster."""
    await service.handle("alice", "h1", events.START_GROUP_CALL, {"groupId": "team", "type": "audio"})
    relay.reset_mock()

    await service.handle("bob", "h2", events.START_GROUP_CALL, {"groupId": "team", "type": "video"})

    assert _sent_to(relay, events.GROUP_CALL_STARTED) == []
    joined = _sent_to(relay, events.GROUP_PARTICIPANT_JOINED)
    assert joined[0][1]["participants"] == ["alice", "bob"]
    assert joined[0][1]["startedBy"] == "alice"
    assert service.rosters.get("team").call_type.value == "audio"


@pytest.mark.asyncio
async def test_join_missing_call_is_dropped(service, relay) -> None:
    """Given no live call, when joining, then nothing is sent."""
    await service.handle("bob", "h2", events.JOIN_GROUP_CALL, {"groupId": "team"})

    relay.send_to_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_last_leave_ends_the_call(service, relay) -> None:
    """Given two participants, when both leave, then group-call-ended follows the last leave."""
    await service.handle("alice", "h1", events.START_GROUP_CALL, {"groupId": "team", "type": "audio"})
    await service.handle("bob", "h2", events.JOIN_GROUP_CALL, {"groupId": "team"})
    relay.reset_mock()

    await service.handle("alice", "h1", events.LEAVE_GROUP_CALL, {"groupId": "team"})
    assert _sent_to(relay, events.GROUP_CALL_ENDED) == []

    await service.handle("bob", "h2", events.LEAVE_GROUP_CALL, {"groupId": "team"})

    left = _sent_to(relay, events.GROUP_PARTICIPANT_LEFT)
    assert [payload["participants"] for user_id, payload in left if user_id == "carol"] == [
        ["bob"],
        [],
    ]
    assert len(_sent_to(relay, events.GROUP_CALL_ENDED)) == 3
    assert service.rosters.get("team") is None


@pytest.mark.asyncio
async def test_end_group_call_requires_participant(service, relay) -> None:
    """Given carol not in the call, when she ends it, then the call stays live."""
    await service.handle("alice", "h1", events.START_GROUP_CALL, {"groupId": "team", "type": "audio"})
    relay.reset_mock()

    await service.handle("carol", "h3", events.END_GROUP_CALL, {"groupId": "team"})
    assert service.rosters.get("team") is not None

    await service.handle("alice", "h1", events.END_GROUP_CALL, {"groupId": "team"})
    assert service.rosters.get("team") is None
    assert len(_sent_to(relay, events.GROUP_CALL_ENDED)) == 3


@pytest.mark.asyncio
async def test_disconnect_removes_user_from_group_calls(service, relay) -> None:
    """Given a participant, when their last connection closes, then they leave the call."""
    await service.connect("alice", "h1")
    await service.connect("bob", "h2")
    await service.handle("alice", "h1", events.START_GROUP_CALL, {"groupId": "team", "type": "audio"})
    await service.handle("bob", "h2", events.JOIN_GROUP_CALL, {"groupId": "team"})
    relay.reset_mock()

    await service.disconnect("h2")

    left = _sent_to(relay, events.GROUP_PARTICIPANT_LEFT)
    assert left[0][1]["participant"]["id"] == "bob"
    assert service.rosters.get("team").participants == ["alice"]


@pytest.mark.asyncio
async def test_group_signal_is_forwarded_with_sender(service, relay) -> None:
    """Given a group-offer between members, then the target gets it with from added."""
    await service.handle(
        "alice",
        "h1",
        events.GROUP_OFFER,
        {"groupId": "team", "targetUserId": "bob", "offer": OFFER},
    )

    assert _sent_to(relay, events.GROUP_OFFER) == [
        ("bob", {"groupId": "team", "targetUserId": "bob", "offer": OFFER, "from": "alice"})
    ]


@pytest.mark.asyncio
async def test_group_signal_to_outsider_is_dropped(service, relay) -> None:
    """Given a target outside the group, then the signal is dropped."""
    await service.handle(
        "alice",
        "h1",
        events.GROUP_ICE_CANDIDATE,
        {"groupId": "team", "targetUserId": "dave", "candidate": {"candidate": "c"}},
    )

    relay.send_to_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_undeliverable_call_is_logged(service, relay, caplog) -> None:
    """Given an offline callee, then a warning is logged."""
    relay.send_to_user.return_value = 0

    await service.handle(
        "alice", "h1", events.CALL_USER, {"to": "bob", "offer": OFFER, "type": "audio"}
    )

    assert "not delivered" in caplog.text

