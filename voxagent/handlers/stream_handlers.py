"""
Handles inbound audio envelopes from WebSocket clients.

Audio arrives as ``{"type": "audio", "data": <base64>}``. The decoded bytes are
handed to the manager's audio callback; malformed envelopes are logged and
dropped so a single bad frame never ends the session.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from voxagent.bot.audio_pipeline import parse_audio_message
from voxagent.config.constants import LOGGER_NAME
from voxagent.models.message_schemas import WSMessage

if TYPE_CHECKING:
    from voxagent.websocket_manager import WebSocketManager, WSClient

logger = logging.getLogger(f"{LOGGER_NAME}.handlers")


async def handle_audio(
    message: Dict[str, Any],
    client: "WSClient",
    manager: "WebSocketManager",
) -> Optional[WSMessage]:
    """
    Handle an ``audio`` envelope from a client.

    Args:
        message: The decoded JSON envelope
        client: The client that sent the audio
        manager: The WebSocket manager owning the callbacks

    Returns:
        None, audio is never acknowledged
    """
    audio_data = parse_audio_message(message, logger)
    if audio_data is None:
        logger.warning(f"Dropping malformed audio envelope from client {client.id}")
        return None

    if manager.on_audio:
        manager.on_audio(client, audio_data)
    return None
