"""
Contract for the conversational AI backends driven by VoxAgent.

Any backend that implements AIProvider can be plugged into the agent: it is
initialized and connected once, receives buffered audio and typed text, and
reports transcripts, responses and errors through registered callbacks.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List

from voxagent.models.message_schemas import ProviderResponse, TranscriptSegment

ResponseCallback = Callable[[ProviderResponse], None]
TranscriptCallback = Callable[[TranscriptSegment], None]
ErrorCallback = Callable[[Exception], None]


class VoxAgentError(Exception):
    """Base class for errors raised by VoxAgent."""


class ProviderError(VoxAgentError):
    """Raised when a provider cannot be initialized, connected or written to."""


class AgentNotConnectedError(VoxAgentError):
    """Raised when an operation requires a connected agent."""


class AIProvider(ABC):
    """
    Base class for AI providers.

    Subclasses implement the connection and send operations; callback
    registration and fan-out are shared.
    """

    name: str = "provider"

    def __init__(self):
        self._response_callbacks: List[ResponseCallback] = []
        self._transcript_callbacks: List[TranscriptCallback] = []
        self._error_callbacks: List[ErrorCallback] = []

    @abstractmethod
    async def initialize(self) -> None:
        """Validate configuration before connecting."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection to the backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection to the backend."""

    @abstractmethod
    async def send_audio(self, audio_data: bytes) -> None:
        """Send a block of buffered audio."""

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Send a typed user message and request a response."""

    @abstractmethod
    def get_supported_voices(self) -> List[str]:
        """Return the voices this backend can speak with."""

    @abstractmethod
    def set_voice(self, voice: str) -> None:
        """Select the voice used for responses."""

    def on_response(self, callback: ResponseCallback) -> None:
        self._response_callbacks.append(callback)

    def on_transcript(self, callback: TranscriptCallback) -> None:
        self._transcript_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    def _dispatch(self, callbacks, payload, logger: logging.Logger) -> None:
        for callback in list(callbacks):
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Error in {self.name} provider callback: {e}", exc_info=True)

    def _emit_response(self, response: ProviderResponse, logger: logging.Logger) -> None:
        self._dispatch(self._response_callbacks, response, logger)

    def _emit_transcript(self, segment: TranscriptSegment, logger: logging.Logger) -> None:
        self._dispatch(self._transcript_callbacks, segment, logger)

    def _emit_error(self, error: Exception, logger: logging.Logger) -> None:
        self._dispatch(self._error_callbacks, error, logger)
