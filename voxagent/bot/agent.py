"""
VoxAgent orchestrator.

VoxAgent wires the audio pipeline, conversation manager and lead extractor to an
AI provider and, in listening mode, to a WebSocket transport. It forwards provider
transcripts and responses into the conversation history, runs lead extraction and
plugin hooks on every message, and reconnects the provider with a linear backoff
after errors.
"""

import asyncio
import logging
from typing import Any, List, Optional, Set

import uvicorn

from voxagent.bot.audio_pipeline import AudioPipeline
from voxagent.bot.lead_extractor import LeadExtractor
from voxagent.config.constants import (
    EVENT_BUFFER,
    EVENT_CLIENT_CONNECT,
    EVENT_CLIENT_DISCONNECT,
    EVENT_CONNECT,
    EVENT_DISCONNECT,
    EVENT_ERROR,
    EVENT_LEAD,
    EVENT_MESSAGE,
    EVENT_RESPONSE,
    EVENT_SILENCE_TIMEOUT,
    EVENT_TRANSCRIPT,
)
from voxagent.config.logging_config import get_logger
from voxagent.config.settings import (
    AudioConfig,
    AudioPipelineConfig,
    ConversationManagerConfig,
    VoxAgentConfig,
)
from voxagent.models.conversation import ConversationManager
from voxagent.models.events import EventEmitter
from voxagent.models.message_schemas import (
    ConversationState,
    LeadInfo,
    Message,
    MessageRole,
    ProviderResponse,
    TranscriptSegment,
)
from voxagent.plugins.base import VoxAgentPlugin
from voxagent.services.provider import AgentNotConnectedError
from voxagent.websocket_manager import WebSocketManager, WSClient

SERVER_START_POLL_INTERVAL = 0.05  # seconds


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class VoxAgent(EventEmitter):
    """
    Composition root of the voice agent.

    Events:
        transcript(text, segment), response(text, response), lead(lead, state),
        error(error, context), connect(True), disconnect(), silenceTimeout(state),
        clientConnect(client), clientDisconnect(client)
    """

    def __init__(
        self,
        config: Optional[VoxAgentConfig] = None,
        logger: Optional[logging.Logger] = None,
        **kwargs: Any,
    ):
        super().__init__()
        if config is None:
            self.config = VoxAgentConfig(**kwargs)
        else:
            # Keyword arguments override fields of an explicit config
            self.config = VoxAgentConfig(**{**dict(config), **kwargs}) if kwargs else config
        self.logger = logger or get_logger("agent")
        self.provider = self.config.provider

        self.audio_pipeline = AudioPipeline(
            AudioPipelineConfig(**(self.config.audio_config or {}))
        )
        self.conversation_manager = ConversationManager(
            ConversationManagerConfig(
                max_conversation_duration=self.config.max_conversation_duration,
                silence_timeout_ms=self.config.silence_timeout_ms,
            )
        )
        self.lead_extractor = LeadExtractor()

        self.is_connected = False
        self.plugins: List[VoxAgentPlugin] = []
        self.websocket_manager: Optional[WebSocketManager] = None

        self._reconnect_attempts = 0
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing = False
        self._active_client_id: Optional[str] = None
        self._server: Optional[uvicorn.Server] = None
        self._server_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

        self._setup_event_handlers()

    @property
    def conversation(self) -> ConversationState:
        return self.conversation_manager.get_state()

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def _setup_event_handlers(self) -> None:
        # Provider callbacks
        self.provider.on_transcript(self._on_provider_transcript)
        self.provider.on_response(self._on_provider_response)
        self.provider.on_error(lambda error: self._handle_error(error, "provider"))

        # Conversation events
        self.conversation_manager.on(EVENT_MESSAGE, self._on_conversation_message)
        self.conversation_manager.on(EVENT_TRANSCRIPT, self._on_conversation_transcript)
        self.conversation_manager.on(EVENT_SILENCE_TIMEOUT, self._on_silence_timeout)

        # Audio pipeline events
        self.audio_pipeline.on(EVENT_BUFFER, self._on_audio_buffer)

        # Lead extraction
        self.lead_extractor.on(EVENT_LEAD, self._on_lead)

    def _on_provider_transcript(self, segment: TranscriptSegment) -> None:
        self.conversation_manager.add_transcript(segment)
        self.emit(EVENT_TRANSCRIPT, segment.text, segment)
        self._call_user_callback(self.config.on_transcript, segment.text, segment)

    def _on_provider_response(self, response: ProviderResponse) -> None:
        # Streaming deltas are surfaced but only the final text enters history
        if response.done:
            self.conversation_manager.add_message(MessageRole.ASSISTANT, response.text)
        self.emit(EVENT_RESPONSE, response.text, response)
        self._call_user_callback(self.config.on_response, response.text, response)

    def _on_conversation_message(self, message: Message) -> None:
        if self.config.enable_lead_extraction and message.role == MessageRole.USER:
            self.lead_extractor.process_message(message)

        for plugin in list(self.plugins):
            self._call_plugin_hook(plugin, "on_message", message)

    def _on_conversation_transcript(self, segment: TranscriptSegment) -> None:
        for plugin in list(self.plugins):
            self._call_plugin_hook(plugin, "on_transcript", segment)

    def _on_silence_timeout(self, state: ConversationState) -> None:
        self.logger.warning("Conversation silence timeout")
        self.emit(EVENT_SILENCE_TIMEOUT, state)

    def _on_lead(self, lead: LeadInfo) -> None:
        conversation = self.conversation
        self.emit(EVENT_LEAD, lead, conversation)
        self._call_user_callback(self.config.on_lead, lead, conversation)

        for plugin in list(self.plugins):
            self._call_plugin_hook(plugin, "on_lead", lead)

    def _on_audio_buffer(self, audio_data: bytes) -> None:
        if not self.is_connected:
            return
        self._spawn(self._send_audio(audio_data))

    async def _send_audio(self, audio_data: bytes) -> None:
        try:
            await self.provider.send_audio(audio_data)
        except Exception as e:
            self._handle_error(e, "audio-send")

    async def connect(self) -> None:
        """
        Initialize and connect the provider, then start a new conversation.

        Raises:
            Exception: Any provider failure, after it has been reported as an error event
        """
        self._closing = False
        await self._connect()

    async def _connect(self) -> None:
        try:
            self.logger.info("Initializing AI provider...")
            await self.provider.initialize()

            if self.config.voice in self.provider.get_supported_voices():
                self.provider.set_voice(self.config.voice)
            else:
                self.logger.warning(
                    f"Voice '{self.config.voice}' not supported by {self.provider.name}, "
                    "keeping the provider default"
                )

            self.logger.info("Connecting to AI provider...")
            await self.provider.connect()

            if self._closing:
                self.logger.info("Agent disconnected while connecting, closing provider")
                await self.provider.disconnect()
                return

            self.is_connected = True
            self._reconnect_attempts = 0

            # A reconnect keeps the running conversation
            if not self.conversation_manager.is_active:
                self._start_conversation()

            self._call_user_callback(self.config.on_connect, True)
            self.emit(EVENT_CONNECT, True)
            self.logger.info("Connected to AI provider")
        except Exception as e:
            self._handle_error(e, "connect")
            raise

    async def disconnect(self) -> None:
        """Run the final lead extraction, then close the provider and end the conversation."""
        self._closing = True
        self._cancel_reconnect()
        try:
            if self.audio_pipeline.is_streaming:
                self.audio_pipeline.stop()

            if self.config.enable_lead_extraction:
                self.lead_extractor.process_conversation(self.conversation_manager.get_state())

            await self.provider.disconnect()
            self.conversation_manager.end()

            self.is_connected = False
            self._call_user_callback(self.config.on_connect, False)
            self.emit(EVENT_DISCONNECT)
            self.logger.info("Disconnected from AI provider")
        except Exception as e:
            self._handle_error(e, "disconnect")
            raise

    async def send_text(self, text: str) -> None:
        """
        Send a typed user message to the provider.

        Raises:
            AgentNotConnectedError: If the agent is not connected
        """
        if not self.is_connected:
            raise AgentNotConnectedError("Agent not connected")

        self.conversation_manager.add_message(MessageRole.USER, text)
        await self.provider.send_text(text)

    async def listen(self, port: int, host: str = "0.0.0.0") -> None:
        """
        Connect the provider and serve WebSocket clients on ``host:port``.

        Returns once the server is accepting connections; call ``stop()`` to shut down.
        """
        self.websocket_manager = WebSocketManager(
            audio_config=AudioConfig(**self.audio_pipeline.get_config().model_dump()),
            on_connect=self._on_client_connect,
            on_disconnect=self._on_client_disconnect,
            on_audio=self._on_client_audio,
            on_text=self._on_client_text,
            on_error=self._on_client_error,
        )

        await self.connect()

        # Imported here to avoid a circular import with the app factory
        from voxagent.main import create_app

        app = create_app(self.websocket_manager, agent=self)
        self._server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=host,
                port=port,
                log_level=self.logger.getEffectiveLevel(),
                ws_ping_interval=5,
                ws_ping_timeout=20,
                ws_max_size=16777216,
                http="h11",
                access_log=False,
            )
        )
        self._server_task = asyncio.create_task(self._server.serve())

        while not self._server.started:
            if self._server_task.done():
                # Surface bind errors and other startup failures
                self._server_task.result()
                raise RuntimeError(f"WebSocket server on {host}:{port} exited during startup")
            await asyncio.sleep(SERVER_START_POLL_INTERVAL)

        self.logger.info(f"VoxAgent listening on {host}:{port}")

    async def wait_closed(self) -> None:
        """Block until the WebSocket server started by ``listen()`` exits."""
        if self._server_task is not None:
            await asyncio.shield(self._server_task)

    async def stop(self) -> None:
        """Stop the WebSocket server, disconnect, then destroy plugins."""
        if self._server is not None:
            self._server.should_exit = True
            if self._server_task is not None:
                await self._server_task
            self._server = None
            self._server_task = None
            self.websocket_manager = None

        try:
            await self.disconnect()
        finally:
            for plugin in list(self.plugins):
                try:
                    await plugin.destroy()
                except Exception as e:
                    self.logger.error(f"Error destroying plugin {plugin.name}: {e}", exc_info=True)

    def use(self, plugin: VoxAgentPlugin) -> "VoxAgent":
        """Register a plugin and initialize it immediately."""
        self.plugins.append(plugin)
        plugin.initialize(self)
        self.logger.info(f"Plugin loaded: {plugin.name}")
        return self

    def get_transcript(self) -> str:
        return "\n".join(
            f"{m.role}: {m.content}" for m in self.conversation_manager.get_messages()
        )

    def export_conversation(self) -> str:
        return self.conversation_manager.export()

    def get_current_lead(self) -> LeadInfo:
        return self.lead_extractor.get_current_lead()

    def _start_conversation(self) -> None:
        self.conversation_manager.start()
        if self.config.system_prompt:
            self.conversation_manager.add_message(MessageRole.SYSTEM, self.config.system_prompt)

    def _on_client_connect(self, client: WSClient) -> None:
        self.logger.info(f"WebSocket client connected: {client.id}")
        if self._active_client_id is not None:
            self.logger.warning(
                f"Client {client.id} replaces active client {self._active_client_id}; "
                "only one conversation is tracked at a time"
            )
        self._active_client_id = client.id
        self.emit(EVENT_CLIENT_CONNECT, client)

        self._start_conversation()

        self.audio_pipeline.start()

    def _on_client_disconnect(self, client: WSClient) -> None:
        self.logger.info(f"WebSocket client disconnected: {client.id}")
        self.emit(EVENT_CLIENT_DISCONNECT, client)

        if client.id != self._active_client_id:
            return
        self._active_client_id = None

        self.audio_pipeline.stop()

        if self.config.enable_lead_extraction:
            self.lead_extractor.process_conversation(self.conversation_manager.get_state())

        if self.conversation_manager.is_active:
            self.conversation_manager.end()

    def _on_client_audio(self, client: WSClient, audio_data: bytes) -> None:
        if client.id != self._active_client_id:
            self.logger.debug(f"Dropping audio from inactive client {client.id}")
            return
        self.audio_pipeline.process_chunk(audio_data)

    async def _on_client_text(self, client: WSClient, text: str) -> None:
        try:
            await self.send_text(text)
        except AgentNotConnectedError:
            self.logger.warning(f"Dropping text from client {client.id}, agent not connected")
        except Exception as e:
            self._handle_error(e, "text-send")

    def _on_client_error(self, client: WSClient, error: Exception) -> None:
        self._handle_error(error, f"websocket-client-{client.id}")

    def _handle_error(self, error: Exception, context: str) -> None:
        """
        Report an error and, while connected, schedule a reconnect.

        The delay grows linearly with the attempt number; once
        ``max_reconnect_attempts`` is reached no further attempt is scheduled.
        """
        self.logger.error(f"Error in {context}: {error}")
        self.emit(EVENT_ERROR, error, context)
        self._call_user_callback(self.config.on_error, error, context)

        if self._closing or not self.is_connected:
            return
        pending = self._reconnect_task
        if pending is not None and not pending.done() and pending is not _current_task():
            self.logger.debug("Reconnection already scheduled")
            return
        if self._reconnect_attempts >= self.config.max_reconnect_attempts:
            self.logger.error(
                f"Max reconnection attempts ({self.config.max_reconnect_attempts}) reached"
            )
            return

        self._reconnect_attempts += 1
        delay = self.config.reconnect_delay * self._reconnect_attempts
        self.logger.info(
            f"Attempting reconnection {self._reconnect_attempts}/"
            f"{self.config.max_reconnect_attempts} in {delay} seconds"
        )
        try:
            self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect(delay))
        except RuntimeError:
            self.logger.error("No running event loop, reconnection not scheduled")

    async def _reconnect(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._closing:
            return
        try:
            await self._connect()
        except Exception as e:
            self.logger.error(f"Reconnection failed: {e}")
        finally:
            # A failed attempt may already have scheduled its successor
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    def _spawn(self, coro) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            self.logger.warning("No running event loop, dropping provider send")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _call_user_callback(self, callback, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            self.logger.error(f"Error in user callback: {e}", exc_info=True)

    def _call_plugin_hook(self, plugin: VoxAgentPlugin, hook: str, payload: Any) -> None:
        try:
            getattr(plugin, hook)(payload)
        except Exception as e:
            self.logger.error(f"Error in plugin {plugin.name}.{hook}: {e}", exc_info=True)
