import base64
from unittest.mock import AsyncMock, MagicMock

import pytest

from voxagent.handlers.session_handlers import handle_config, handle_ping, handle_text
from voxagent.handlers.stream_handlers import handle_audio
from voxagent.websocket_manager import WebSocketManager, WSClient


@pytest.mark.asyncio
class TestHandlers:

    def setup_method(self):
        self.client = WSClient(
            id="client-1",
            websocket=AsyncMock(),
            audio_config={"sample_rate": 24000, "channels": 1, "format": "pcm16", "buffer_size": 4096},
        )
        self.manager = MagicMock(spec=WebSocketManager)
        self.manager.on_audio = MagicMock()
        self.manager.on_text = AsyncMock()

    async def test_handle_audio(self):
        message = {"type": "audio", "data": base64.b64encode(b"\x00\x01").decode()}

        response = await handle_audio(message, self.client, self.manager)

        assert response is None
        self.manager.on_audio.assert_called_once_with(self.client, b"\x00\x01")

    async def test_handle_audio_malformed(self):
        response = await handle_audio({"type": "audio", "data": "%%%"}, self.client, self.manager)

        assert response is None
        self.manager.on_audio.assert_not_called()

    async def test_handle_ping(self):
        self.client.is_alive = False

        response = await handle_ping({"type": "ping"}, self.client, self.manager)

        assert response.type == "pong"
        assert self.client.is_alive

    async def test_handle_config_merges(self):
        response = await handle_config(
            {"type": "config", "data": {"sample_rate": 16000}}, self.client, self.manager
        )

        assert response is None
        assert self.client.audio_config["sample_rate"] == 16000
        assert self.client.audio_config["format"] == "pcm16"

    async def test_handle_config_invalid_leaves_settings(self):
        await handle_config(
            {"type": "config", "data": {"format": "mp3"}}, self.client, self.manager
        )
        await handle_config({"type": "config", "data": "nope"}, self.client, self.manager)

        assert self.client.audio_config["format"] == "pcm16"

    async def test_handle_text(self):
        await handle_text({"type": "text", "data": "hello"}, self.client, self.manager)

        self.manager.on_text.assert_awaited_once_with(self.client, "hello")

    async def test_handle_text_empty(self):
        await handle_text({"type": "text", "data": "  "}, self.client, self.manager)

        self.manager.on_text.assert_not_called()
