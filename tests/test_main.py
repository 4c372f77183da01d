"""Tests for server composition."""

from pathlib import Path

import pytest
from starlette.testclient import TestClient

from chat_signaling.adapters.config import AppConfig
from chat_signaling.main import build_adapter

EXAMPLE_CONFIG = str(Path(__file__).parent.parent / "config.example.toml")


def test_build_adapter_serves_health_and_online() -> None:
    """Given the example config, when building, then the app answers health and online."""
    adapter = build_adapter(AppConfig(_env_file=None, config_file=EXAMPLE_CONFIG))

    with TestClient(adapter.create_app()) as client:
        assert client.get("/healthz").text == "Ok"
        assert client.get("/online").json() == []


def test_build_adapter_loads_directory_into_service() -> None:
    """Given the example config, when building, then declared profiles decorate calls."""
    adapter = build_adapter(AppConfig(_env_file=None, config_file=EXAMPLE_CONFIG))

    alice = adapter.handler.directory.get_user("alice")

    assert alice is not None
    assert alice.avatar == "https://example.com/avatars/alice.png"
    assert adapter.handler.directory.is_group_member("team", "carol") is True


def test_build_adapter_rejects_invalid_directory(tmp_path: Path) -> None:
    """Given a duplicate user, when building, then ValueError is raised."""
    path = tmp_path / "config.toml"
    path.write_text('[[users]]\nid = "a"\n\n[[users]]\nid = "a"\n', encoding="utf-8")

    with pytest.raises(ValueError, match="Duplicate user id"):
        build_adapter(AppConfig(_env_file=None, config_file=str(path)))


def test_custom_websocket_path() -> None:
    """Given a custom websocket path, when connecting there, then the socket is served."""
    adapter = build_adapter(
        AppConfig(_env_file=None, config_file=EXAMPLE_CONFIG, websocket_path="/signal")
    )

    with TestClient(adapter.create_app()) as client:
        with client.websocket_connect("/signal?userId=alice") as websocket:
            assert websocket.receive_json()["event"] == "getOnlineUsers"
