import logging
from typing import List

import pytest

from voxagent.models.message_schemas import ProviderResponse, TranscriptSegment
from voxagent.services.provider import AIProvider

logger = logging.getLogger("voxagent.tests")


class FakeProvider(AIProvider):
    """In-memory provider recording what the agent sends it."""

    name = "fake"

    def __init__(self):
        super().__init__()
        self.initialized = 0
        self.connected = 0
        self.disconnected = 0
        self.audio: List[bytes] = []
        self.texts: List[str] = []
        self.voice = "alloy"
        self.connect_error = None

    async def initialize(self) -> None:
        self.initialized += 1

    async def connect(self) -> None:
        self.connected += 1
        if self.connect_error is not None:
            raise self.connect_error

    async def disconnect(self) -> None:
        self.disconnected += 1

    async def send_audio(self, audio_data: bytes) -> None:
        self.audio.append(audio_data)

    async def send_text(self, text: str) -> None:
        self.texts.append(text)

    def get_supported_voices(self) -> List[str]:
        return ["alloy", "echo"]

    def set_voice(self, voice: str) -> None:
        self.voice = voice

    def push_transcript(self, text: str, is_final: bool = True, segment_id: str = "seg-1"):
        self._emit_transcript(TranscriptSegment(id=segment_id, text=text, is_final=is_final), logger)

    def push_response(self, text: str, done: bool = True):
        self._emit_response(ProviderResponse(text=text, done=done), logger)

    def push_error(self, error: Exception):
        self._emit_error(error, logger)


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def provider():
    return FakeProvider()
