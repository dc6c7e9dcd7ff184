"""
Claude RPG - WebSocket Hub Tests
================================

Live battle log and session updates over /ws.
"""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rpg_server.core.broadcast import WSMessage, WSMessageType

from tests.conftest import post_tool, prompt_submit, stop


@pytest.fixture
def live_client(app: FastAPI):
    """Synchronous client that runs the app lifespan (load and final flush)."""
    with TestClient(app) as client:
        yield client


# ==========================================================================
# Message Format
# ==========================================================================

class TestWSMessage:
    """Envelope serialization."""

    def test_round_trip(self):
        message = WSMessage(type=WSMessageType.PING, payload={"n": 1})

        parsed = WSMessage.from_json(message.to_json())

        assert parsed.type == WSMessageType.PING
        assert parsed.payload == {"n": 1}
        assert parsed.message_id == message.message_id

    def test_server_message_types(self):
        assert WSMessageType.EVENT.value == "rpg:event"
        assert WSMessageType.SESSION_UPDATE.value == "rpg:session_update"


# ==========================================================================
# Connection
# ==========================================================================

class TestConnection:
    """Handshake and client messages."""

    def test_connect_confirms(self, live_client: TestClient):
        with live_client.websocket_connect("/ws") as ws:
            message = ws.receive_json()

            assert message["type"] == "connected"
            assert message["payload"]["client_id"]

    def test_ping_pong(self, live_client: TestClient):
        with live_client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_text(json.dumps({"type": "ping"}))

            assert ws.receive_json()["type"] == "pong"

    @pytest.mark.parametrize("raw", ["not json", json.dumps({"type": "teleport"}), json.dumps({"payload": 1})])
    def test_invalid_message_gets_error(self, live_client: TestClient, raw):
        with live_client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_text(raw)

            message = ws.receive_json()
            assert message["type"] == "error"

    def test_new_client_receives_active_session(self, live_client: TestClient):
        live_client.post("/api/events", json=prompt_submit("S1"))

        with live_client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["type"] == "connected"
            update = ws.receive_json()

            assert update["type"] == "rpg:session_update"
            assert update["payload"]["id"] == "S1"

    def test_client_count_in_health(self, live_client: TestClient):
        with live_client.websocket_connect("/ws") as ws:
            ws.receive_json()

            assert live_client.get("/health").json()["connected_clients"] == 1


# ==========================================================================
# Broadcast
# ==========================================================================

class TestBroadcast:
    """Events posted over HTTP fan out to connected clients."""

    def test_session_lifecycle_broadcast(self, live_client: TestClient):
        with live_client.websocket_connect("/ws") as ws:
            ws.receive_json()

            live_client.post("/api/events", json=prompt_submit("S1", "Ship it"))
            event = ws.receive_json()
            update = ws.receive_json()

            assert event["type"] == "rpg:event"
            assert event["payload"]["type"] == "UserPromptSubmit"
            assert event["payload"]["isSessionStart"] is True
            assert update["type"] == "rpg:session_update"
            assert update["payload"]["id"] == "S1"
            assert update["payload"]["prompt"] == "Ship it"

            live_client.post("/api/events", json=post_tool("S1", "Edit", tool_input={"file_path": "/a/b/c/d.py"}))
            event = ws.receive_json()
            update = ws.receive_json()

            assert event["payload"]["toolInputSummary"] == "b/c/d.py"
            assert update["payload"]["toolUsage"] == {"Edit": 1}

            live_client.post("/api/events", json=stop("S1"))
            event = ws.receive_json()
            update = ws.receive_json()

            assert event["payload"]["isSessionEnd"] is True
            assert event["payload"]["sessionSummary"]["toolCount"] == 1
            assert update["payload"]["status"] == "completed"

    def test_orphan_event_has_no_session_update(self, live_client: TestClient):
        with live_client.websocket_connect("/ws") as ws:
            ws.receive_json()

            live_client.post("/api/events", json=post_tool("ghost", "Bash"))
            live_client.post("/api/chains/trigger/deploy")

            first = ws.receive_json()
            second = ws.receive_json()

            assert first["type"] == "rpg:event"
            assert first["payload"]["tool"] == "Bash"
            assert second["type"] == "rpg:event"
            assert second["payload"]["type"] == "ChainTrigger"
            assert second["payload"]["chainId"] == "deploy"
