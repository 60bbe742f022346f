"""Tests for the live updates HTTP and websocket endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from livefeed.infrastructure.realtime import RealtimeService
from main import create_app


@pytest.fixture
def client(backend, settings):
    service = RealtimeService(backend_factory=lambda _settings: backend)
    with TestClient(create_app(service=service, settings=settings)) as test_client:
        yield test_client


def test_status_reports_connection_and_scopes(client):
    response = client.get("/live/status")

    assert response.status_code == 200
    assert response.json() == {
        "is_connected": True,
        "is_connecting": False,
        "error": None,
        "scopes": [],
    }


def test_reconnect_recovers_after_a_drop(client, backend):
    client.portal.call(backend.drop, "socket closed")
    assert client.get("/live/status").json()["error"] == "socket closed"

    response = client.post("/live/reconnect")

    assert response.status_code == 200
    assert response.json()["is_connected"] is True
    assert backend.opens == 2


def test_websocket_streams_notifications_for_its_thread(client, backend, make_message):
    with client.websocket_connect("/live/ws?thread=42") as websocket:
        init = websocket.receive_json()
        assert init["type"] == "init"
        assert init["data"]["scope"] == "thread:42"
        assert init["data"]["notifications"] == []
        assert init["data"]["is_connected"] is True

        status = client.get("/live/status").json()
        assert status["scopes"] == [{"topic": "thread:42", "ref_count": 1}]

        client.portal.call(
            backend.emit,
            "thread:42",
            make_message("reply", id="r1", post_id="42", author={"username": "bob"}),
        )
        message = websocket.receive_json()

        assert message["type"] == "notification"
        assert message["data"]["unread_count"] == 1
        notification = message["data"]["notification"]
        assert notification["title"] == "New Reply"
        assert notification["message"] == "bob replied to a post"
        assert notification["target"]["url"] == "/forums/post/42#reply-r1"

        websocket.send_json({"type": "ack", "ids": [notification["id"]]})
        update = websocket.receive_json()
        assert update["type"] == "feed"
        assert update["data"]["unread_count"] == 0
        assert update["data"]["badge"] is None


def test_websocket_pushes_sound_cue_when_enabled(client, backend, make_message, settings):
    with client.websocket_connect("/live/ws?sound=true") as websocket:
        assert websocket.receive_json()["data"]["sound_enabled"] is True

        client.portal.call(backend.emit, "global", make_message("vote", id="v1", vote_type="upvote"))
        received = {}
        for _ in range(2):
            message = websocket.receive_json()
            received[message["type"]] = message["data"]

    assert received["sound"] == {
        "url": settings.notification_sound_url,
        "volume": settings.notification_sound_volume,
    }
    assert received["notification"]["notification"]["message"] == "Someone upvoted a post"


def test_websocket_commands(client):
    with client.websocket_connect("/live/ws") as websocket:
        websocket.receive_json()

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

        websocket.send_json({"type": "expand", "expanded": True})
        assert websocket.receive_json()["data"]["expanded"] is True

        websocket.send_json({"type": "sound"})
        assert websocket.receive_json()["data"]["sound_enabled"] is True

        websocket.send_json({"type": "unknown"})
        websocket.send_json({"type": "ack", "ids": []})
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}


def test_websocket_reports_connectivity_changes(client, backend):
    with client.websocket_connect("/live/ws?category=7") as websocket:
        websocket.receive_json()

        client.portal.call(backend.drop, "socket closed")
        assert websocket.receive_json() == {
            "type": "status",
            "data": {"is_connected": False, "error": "socket closed"},
        }

        websocket.send_json({"type": "retry"})
        assert websocket.receive_json() == {
            "type": "status",
            "data": {"is_connected": True, "error": None},
        }


def test_websocket_rejected_when_service_not_started(backend):
    app = create_app(service=RealtimeService(backend_factory=lambda _settings: backend))
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/live/ws") as websocket:
            websocket.receive_json()


def test_websocket_rejects_blank_scope_identifiers(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/live/ws?thread=%20%20") as websocket:
            websocket.receive_json()

    assert excinfo.value.code == 1008
