"""
Handles control envelopes from WebSocket clients: ping, config and text.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import ValidationError

from voxagent.config.constants import LOGGER_NAME, MESSAGE_TYPE_PONG
from voxagent.config.settings import AudioConfig
from voxagent.models.message_schemas import WSMessage

if TYPE_CHECKING:
    from voxagent.websocket_manager import WebSocketManager, WSClient

logger = logging.getLogger(f"{LOGGER_NAME}.handlers")


async def handle_ping(
    message: Dict[str, Any],
    client: "WSClient",
    manager: "WebSocketManager",
) -> WSMessage:
    """Answer a client ping with a pong envelope."""
    client.is_alive = True
    return WSMessage(type=MESSAGE_TYPE_PONG, data=None)


async def handle_config(
    message: Dict[str, Any],
    client: "WSClient",
    manager: "WebSocketManager",
) -> Optional[WSMessage]:
    """
    Merge a client's audio configuration update into its current settings.

    Unknown keys are ignored; an invalid update leaves the settings untouched.
    """
    data = message.get("data")
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config message without an object payload from {client.id}")
        return None

    merged = {**client.audio_config, **data}
    try:
        validated = AudioConfig(**merged)
    except ValidationError as e:
        logger.error(f"Invalid audio config from client {client.id}: {e}")
        return None

    client.audio_config = validated.model_dump()
    logger.info(f"Updated audio config for client {client.id}")
    return None


async def handle_text(
    message: Dict[str, Any],
    client: "WSClient",
    manager: "WebSocketManager",
) -> Optional[WSMessage]:
    """Forward a typed user message to the manager's text callback."""
    text = message.get("data")
    if not isinstance(text, str) or not text.strip():
        logger.warning(f"Ignoring empty text message from client {client.id}")
        return None

    if manager.on_text:
        await manager.on_text(client, text)
    return None
