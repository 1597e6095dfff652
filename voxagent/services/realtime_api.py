"""
OpenAI Realtime API provider.

Streams buffered microphone audio and typed text to the OpenAI Realtime API over
a WebSocket and turns its server events into transcript segments and responses.
"""

import asyncio
import base64
import json
import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from voxagent.config.constants import DEFAULT_REALTIME_MODEL, DEFAULT_VOICE
from voxagent.config.logging_config import get_logger
from voxagent.models.message_schemas import ProviderResponse, TranscriptSegment, now_ms
from voxagent.services.provider import AIProvider, ProviderError

REALTIME_URL = "wss://api.openai.com/v1/realtime"
CONNECTION_TIMEOUT = 30  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32
WS_PING_INTERVAL = 5

SUPPORTED_VOICES = [
    "alloy", "echo", "fable", "onyx", "nova", "shimmer",
    "ash", "ballad", "coral", "sage", "verse",
]


class OpenAIRealtimeProvider(AIProvider):
    """
    AIProvider backed by the OpenAI Realtime API.

    Server events handled:
        conversation.item.input_audio_transcription.completed -> final transcript
        response.audio_transcript.delta -> streaming response (done=False)
        response.audio_transcript.done -> final response (done=True)
        error -> error callbacks
    """

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_REALTIME_MODEL,
        voice: str = DEFAULT_VOICE,
        instructions: str = "",
        temperature: float = 0.8,
        max_response_output_tokens: int | str = 4096,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__()
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")
        self.model = model
        self.instructions = instructions
        self.temperature = temperature
        self.max_response_output_tokens = max_response_output_tokens
        self.logger = logger or get_logger("openai-provider")

        if voice not in SUPPORTED_VOICES:
            raise ProviderError(f"Voice '{voice}' is not supported by OpenAI")
        self.current_voice = voice

        self.ws = None
        self.session_created = False
        self._recv_task: Optional[asyncio.Task] = None
        self._voice_task: Optional[asyncio.Task] = None
        self._is_closing = False

        self.handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            "session.created": self._handle_session_created,
            "conversation.item.input_audio_transcription.completed": self._handle_transcription,
            "response.audio_transcript.delta": self._handle_transcript_delta,
            "response.audio_transcript.done": self._handle_transcript_done,
            "error": self._handle_error_event,
        }

    @property
    def is_connected(self) -> bool:
        return self.ws is not None

    async def initialize(self) -> None:
        if not self.api_key:
            raise ProviderError(
                "OpenAI API key is required. Set OPENAI_API_KEY or pass api_key."
            )
        self.logger.info("OpenAI provider initialized")

    async def connect(self) -> None:
        """
        Open the Realtime WebSocket and configure the session.

        Raises:
            ProviderError: If the connection cannot be established in time
        """
        if self.ws is not None or self._recv_task is not None:
            self.logger.info("Closing previous OpenAI connection before reconnecting")
            await self._close_connection()
        self._is_closing = False
        url = f"{REALTIME_URL}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

        self.logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
        connection_start = time.time()
        try:
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=10,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Timeout while connecting to OpenAI Realtime API (after {CONNECTION_TIMEOUT}s)"
            ) from e
        except (OSError, WebSocketException) as e:
            raise ProviderError(f"Failed to connect to OpenAI Realtime API: {e}") from e

        self.logger.debug(
            f"WebSocket connection established in {time.time() - connection_start:.2f} seconds"
        )
        self._recv_task = asyncio.create_task(self._recv_loop())
        await self._send_event({"type": "session.update", "session": self._session_config()})
        self.logger.info("Connected to OpenAI Realtime API")

    async def disconnect(self) -> None:
        await self._close_connection()
        self.logger.info("Disconnected from OpenAI")

    async def _close_connection(self) -> None:
        self._is_closing = True
        if self._recv_task is not None:
            self._recv_task.cancel()
            self._recv_task = None
        if self._voice_task is not None and not self._voice_task.done():
            self._voice_task.cancel()
        self._voice_task = None

        ws, self.ws = self.ws, None
        self.session_created = False
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                self.logger.debug(f"Error closing previous WebSocket: {e}")

    async def send_audio(self, audio_data: bytes) -> None:
        await self._send_event(
            {
                "type": "input_audio_buffer.append",
                "audio": base64.b64encode(audio_data).decode("ascii"),
            }
        )

    async def send_text(self, text: str) -> None:
        await self._send_event(
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": text}],
                },
            }
        )
        await self._send_event({"type": "response.create"})

    def get_supported_voices(self) -> List[str]:
        return list(SUPPORTED_VOICES)

    def set_voice(self, voice: str) -> None:
        """
        Select the response voice, updating the live session when connected.

        Without a live session the voice is only stored; the session.update
        sent by the next ``connect`` carries it.

        Raises:
            ProviderError: If the voice is not supported
        """
        if voice not in SUPPORTED_VOICES:
            raise ProviderError(f"Voice '{voice}' is not supported by OpenAI")
        self.current_voice = voice

        if self.ws is None or self._recv_task is None or self._recv_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning("No running event loop, voice applies on next connect")
            return
        self._voice_task = loop.create_task(
            self._send_event({"type": "session.update", "session": {"voice": voice}})
        )
        self._voice_task.add_done_callback(self._on_voice_update_done)

    def _on_voice_update_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.warning(f"Voice update not applied: {error}")

    def _session_config(self) -> Dict[str, Any]:
        return {
            "modalities": ["text", "audio"],
            "instructions": self.instructions,
            "voice": self.current_voice,
            "input_audio_format": "pcm16",
            "output_audio_format": "pcm16",
            "input_audio_transcription": {"model": "whisper-1"},
            "turn_detection": {
                "type": "server_vad",
                "threshold": 0.5,
                "prefix_padding_ms": 300,
                "silence_duration_ms": 500,
            },
            "temperature": self.temperature,
            "max_response_output_tokens": self.max_response_output_tokens,
        }

    async def _send_event(self, event: Dict[str, Any]) -> None:
        if self.ws is None:
            raise ProviderError("WebSocket not connected")
        try:
            await self.ws.send(json.dumps(event))
        except ConnectionClosed as e:
            raise ProviderError(f"Connection closed while sending {event['type']}: {e}") from e

    async def _recv_loop(self) -> None:
        try:
            async for message in self.ws:
                if isinstance(message, bytes):
                    self.logger.debug(f"Ignoring binary frame of {len(message)} bytes")
                    continue
                self._handle_message(message)
        except ConnectionClosedOK:
            self.logger.info("WebSocket connection closed normally")
        except ConnectionClosed as e:
            if not self._is_closing:
                self.logger.warning(f"Connection to OpenAI closed unexpectedly: {e}")
                self._emit_error(ProviderError(f"Connection closed: {e}"), self.logger)
        finally:
            self.session_created = False

    def _handle_message(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            self.logger.warning(f"Received invalid JSON: {raw[:100]}...")
            return

        message_type = data.get("type", "unknown")
        handler = self.handlers.get(message_type)
        if handler is None:
            self.logger.debug(f"Unhandled message type: {message_type}")
            return
        handler(data)

    def _handle_session_created(self, data: Dict[str, Any]) -> None:
        self.session_created = True
        self.logger.info("Session created")

    def _handle_transcription(self, data: Dict[str, Any]) -> None:
        transcript = data.get("transcript")
        if not transcript:
            return
        timestamp = now_ms()
        segment = TranscriptSegment(
            id=data.get("item_id") or f"user-{timestamp}",
            text=transcript,
            is_final=True,
            timestamp=timestamp,
        )
        self._emit_transcript(segment, self.logger)

    def _handle_transcript_delta(self, data: Dict[str, Any]) -> None:
        if data.get("delta"):
            self._emit_response(ProviderResponse(text=data["delta"], done=False), self.logger)

    def _handle_transcript_done(self, data: Dict[str, Any]) -> None:
        if data.get("transcript"):
            self._emit_response(ProviderResponse(text=data["transcript"], done=True), self.logger)

    def _handle_error_event(self, data: Dict[str, Any]) -> None:
        self.logger.error(f"Received error from OpenAI: {data}")
        error = data.get("error") or {}
        self._emit_error(ProviderError(str(error.get("message", "Unknown error"))), self.logger)
