"""
WebSocket connection manager for VoxAgent clients.

This module implements the server side of the VoxAgent envelope protocol:
- Accept WebSocket connections and assign each client an identifier
- Send a ``config`` welcome envelope with the client id and audio settings
- Route incoming envelopes to handler functions by their ``type``
- Report connect, disconnect, audio and error events through callbacks

The agent consumes the manager only through these callbacks; outbound audio is
produced by the provider, not written here.
"""

import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field

from voxagent.config.constants import (
    LOGGER_NAME,
    MESSAGE_TYPE_AUDIO,
    MESSAGE_TYPE_CONFIG,
    MESSAGE_TYPE_ERROR,
    MESSAGE_TYPE_PING,
    MESSAGE_TYPE_TEXT,
)
from voxagent.config.settings import AudioConfig
from voxagent.handlers.session_handlers import handle_config, handle_ping, handle_text
from voxagent.handlers.stream_handlers import handle_audio
from voxagent.models.message_schemas import WSMessage, now_ms

logger = logging.getLogger(f"{LOGGER_NAME}.websocket")


class WSClient(BaseModel):
    """A connected WebSocket client."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    websocket: Any = Field(..., exclude=True)
    is_alive: bool = True
    connected_at: int = Field(default_factory=now_ms)
    audio_config: Dict[str, Any] = Field(default_factory=dict)


# Type hint for handler functions
HandlerFunc = Callable[
    [Dict[str, Any], WSClient, "WebSocketManager"],
    Awaitable[Optional[WSMessage]],
]
ClientCallback = Callable[[WSClient], None]


class WebSocketManager:
    """Manages client connections and routes envelopes to handlers.

    Each envelope is routed by its ``type`` field. Types without a handler are
    passed to ``on_message``. Malformed JSON is answered with an ``error``
    envelope and the connection stays open.
    """

    def __init__(
        self,
        audio_config: Optional[AudioConfig] = None,
        on_connect: Optional[ClientCallback] = None,
        on_disconnect: Optional[ClientCallback] = None,
        on_audio: Optional[Callable[[WSClient, bytes], None]] = None,
        on_text: Optional[Callable[[WSClient, str], Awaitable[None]]] = None,
        on_message: Optional[Callable[[WSClient, Dict[str, Any]], None]] = None,
        on_error: Optional[Callable[[WSClient, Exception], None]] = None,
    ):
        self.audio_config = audio_config or AudioConfig()
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self.on_audio = on_audio
        self.on_text = on_text
        self.on_message = on_message
        self.on_error = on_error
        self.clients: Dict[str, WSClient] = {}

        # Define handlers dictionary
        self.handlers: Dict[str, HandlerFunc] = {
            MESSAGE_TYPE_AUDIO: handle_audio,
            MESSAGE_TYPE_PING: handle_ping,
            MESSAGE_TYPE_CONFIG: handle_config,
            MESSAGE_TYPE_TEXT: handle_text,
        }

    def get_client_count(self) -> int:
        return len(self.clients)

    async def send_to_client(self, client_id: str, message: WSMessage) -> bool:
        """
        Send an envelope to one client.

        Returns:
            bool: True if the message was sent, False if the client is unknown or the send failed
        """
        client = self.clients.get(client_id)
        if not client:
            return False

        try:
            await client.websocket.send_text(message.to_json())
            return True
        except Exception as e:
            logger.error(f"Failed to send message to client {client_id}: {e}")
            return False

    async def broadcast(self, message: WSMessage, exclude_client_id: Optional[str] = None) -> None:
        for client_id in list(self.clients):
            if client_id != exclude_client_id:
                await self.send_to_client(client_id, message)

    async def handle_websocket(self, websocket: WebSocket):
        """Handle a WebSocket connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        This method:
        1. Accepts the connection and registers the client
        2. Sends the ``config`` welcome envelope
        3. Routes each envelope to its handler and sends any response
        4. Notifies ``on_disconnect`` and removes the client when the connection ends
        """
        await websocket.accept()
        client = WSClient(
            id=self._generate_client_id(),
            websocket=websocket,
            audio_config=self.audio_config.model_dump(),
        )
        self.clients[client.id] = client
        logger.info(f"Client connected: {client.id} from {websocket.client}")

        await self.send_to_client(
            client.id,
            WSMessage(
                type=MESSAGE_TYPE_CONFIG,
                data={"clientId": client.id, "audioConfig": client.audio_config},
            ),
        )

        if self.on_connect:
            self.on_connect(client)

        try:
            while True:
                data = await websocket.receive_text()
                await self._handle_message(client, data)
        except WebSocketDisconnect as e:
            logger.info(f"Client disconnected: {client.id}, code: {e.code}")
        except Exception as e:
            logger.error(f"WebSocket error for client {client.id}: {e}", exc_info=True)
            if self.on_error:
                self.on_error(client, e)
        finally:
            self.clients.pop(client.id, None)
            if self.on_disconnect:
                self.on_disconnect(client)
            try:
                await websocket.close()
            except (RuntimeError, WebSocketDisconnect):
                # Already closed by the client
                pass
            logger.info(f"WebSocket connection closed: {client.id}")

    async def _handle_message(self, client: WSClient, data: str) -> None:
        try:
            message_dict = json.loads(data)
            if not isinstance(message_dict, dict):
                raise ValueError("Envelope must be a JSON object")
        except ValueError as e:
            logger.error(f"Failed to parse message from client {client.id}: {e}")
            await self.send_to_client(
                client.id, WSMessage(type=MESSAGE_TYPE_ERROR, data="Invalid message format")
            )
            return

        message_type = message_dict.get("type")

        # Fast path for audio to minimize per-frame overhead
        if message_type != MESSAGE_TYPE_AUDIO:
            logger.debug(f"Received message type: {message_type} from client: {client.id}")

        handler = self.handlers.get(message_type)
        if handler is None:
            if self.on_message:
                self.on_message(client, message_dict)
            else:
                logger.warning(f"Unhandled message type received: {message_type}")
            return

        response = await handler(message_dict, client, self)
        if response is not None:
            await self.send_to_client(client.id, response)

    @staticmethod
    def _generate_client_id() -> str:
        return f"client-{now_ms()}-{uuid.uuid4().hex[:9]}"
