import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.testclient import TestClient

from voxagent.main import create_app
from voxagent.websocket_manager import WebSocketManager, WSClient


@pytest.fixture
def websocket_manager():
    return WebSocketManager()


@pytest.fixture
def websocket():
    websocket = AsyncMock(spec=WebSocket)
    websocket.client = ("127.0.0.1", 5000)
    return websocket


def sent_envelopes(websocket):
    return [json.loads(c.args[0]) for c in websocket.send_text.call_args_list]


@pytest.mark.asyncio
async def test_websocket_manager_initialization(websocket_manager):
    assert set(websocket_manager.handlers) == {"audio", "ping", "config", "text"}
    assert websocket_manager.get_client_count() == 0


@pytest.mark.asyncio
async def test_handle_websocket_flow(websocket, websocket_manager):
    on_connect, on_disconnect, on_audio = MagicMock(), MagicMock(), MagicMock()
    websocket_manager.on_connect = on_connect
    websocket_manager.on_disconnect = on_disconnect
    websocket_manager.on_audio = on_audio
    websocket.receive_text.side_effect = [
        json.dumps({"type": "ping"}),
        json.dumps({"type": "audio", "data": base64.b64encode(b"\x01\x02").decode()}),
        WebSocketDisconnect(code=1000),
    ]

    await websocket_manager.handle_websocket(websocket)

    websocket.accept.assert_called_once()
    envelopes = sent_envelopes(websocket)
    assert envelopes[0]["type"] == "config"
    assert envelopes[0]["data"]["clientId"].startswith("client-")
    assert envelopes[0]["data"]["audioConfig"]["sample_rate"] == 24000
    assert envelopes[1] == {"type": "pong"}

    client = on_connect.call_args.args[0]
    on_audio.assert_called_once_with(client, b"\x01\x02")
    on_disconnect.assert_called_once_with(client)
    assert websocket_manager.get_client_count() == 0


@pytest.mark.asyncio
async def test_malformed_json_keeps_session_open(websocket, websocket_manager):
    on_audio = MagicMock()
    websocket_manager.on_audio = on_audio
    websocket.receive_text.side_effect = [
        "{not json",
        json.dumps(["not", "an", "object"]),
        json.dumps({"type": "audio", "data": base64.b64encode(b"ok").decode()}),
        WebSocketDisconnect(code=1000),
    ]

    await websocket_manager.handle_websocket(websocket)

    errors = [e for e in sent_envelopes(websocket) if e["type"] == "error"]
    assert errors == [
        {"type": "error", "data": "Invalid message format"},
        {"type": "error", "data": "Invalid message format"},
    ]
    on_audio.assert_called_once()


@pytest.mark.asyncio
async def test_unknown_type_goes_to_on_message(websocket, websocket_manager):
    on_message = MagicMock()
    websocket_manager.on_message = on_message
    websocket.receive_text.side_effect = [
        json.dumps({"type": "transcript", "data": "hi"}),
        WebSocketDisconnect(code=1000),
    ]

    await websocket_manager.handle_websocket(websocket)

    assert on_message.call_args.args[1] == {"type": "transcript", "data": "hi"}


@pytest.mark.asyncio
async def test_unexpected_error_reported(websocket, websocket_manager):
    on_error, on_disconnect = MagicMock(), MagicMock()
    websocket_manager.on_error = on_error
    websocket_manager.on_disconnect = on_disconnect
    failure = RuntimeError("transport broke")
    websocket.receive_text.side_effect = failure

    await websocket_manager.handle_websocket(websocket)

    assert on_error.call_args.args[1] is failure
    on_disconnect.assert_called_once()
    websocket.close.assert_called_once()


@pytest.mark.asyncio
async def test_send_to_unknown_client(websocket_manager):
    from voxagent.models.message_schemas import WSMessage

    assert await websocket_manager.send_to_client("missing", WSMessage(type="pong")) is False


@pytest.mark.asyncio
async def test_broadcast_skips_excluded_client(websocket_manager):
    from voxagent.models.message_schemas import WSMessage

    first = WSClient(id="a", websocket=AsyncMock())
    second = WSClient(id="b", websocket=AsyncMock())
    websocket_manager.clients = {"a": first, "b": second}

    await websocket_manager.broadcast(WSMessage(type="pong"), exclude_client_id="a")

    first.websocket.send_text.assert_not_called()
    second.websocket.send_text.assert_called_once_with('{"type": "pong"}')


def test_websocket_endpoint_with_test_client():
    received = []
    manager = WebSocketManager(on_audio=lambda client, data: received.append(data))
    client = TestClient(create_app(manager))

    with client.websocket_connect("/ws") as ws:
        welcome = ws.receive_json()
        assert welcome["type"] == "config"

        ws.send_text(json.dumps({"type": "ping"}))
        assert ws.receive_json() == {"type": "pong"}

        ws.send_text("garbage")
        assert ws.receive_json() == {"type": "error", "data": "Invalid message format"}

        ws.send_text(json.dumps({"type": "audio", "data": base64.b64encode(b"pcm").decode()}))
        ws.send_text(json.dumps({"type": "ping"}))
        ws.receive_json()

    assert received == [b"pcm"]


def test_health_and_root_routes():
    client = TestClient(create_app(WebSocketManager()))

    health = client.get("/health").json()
    assert health == {"status": "healthy", "active_connections": 0}

    root = client.get("/").json()
    assert root["name"] == "VoxAgent"
    assert "/ws" in root["endpoints"]
