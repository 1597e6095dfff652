"""
Audio pipeline for buffering streamed audio before it is sent to a provider.

Audio frames received while the pipeline is streaming are appended to an in-memory
buffer and flushed as one contiguous block once the buffered audio reaches the
configured duration window. The pipeline also provides an energy-based voice
activity heuristic and helpers for the base64 ``audio`` WebSocket envelope.
"""

import base64
import binascii
import json
import logging
import uuid
from typing import Any, Dict, List, NamedTuple, Optional, Union

import numpy as np
from pydantic import ValidationError

from voxagent.config.constants import (
    BYTES_PER_SAMPLE,
    EVENT_BUFFER,
    EVENT_CHUNK,
    EVENT_STARTED,
    EVENT_STOPPED,
    MAX_SAMPLE_AMPLITUDE,
    MESSAGE_TYPE_AUDIO,
)
from voxagent.config.logging_config import get_logger
from voxagent.config.settings import AudioPipelineConfig
from voxagent.models.events import EventEmitter
from voxagent.models.message_schemas import WSMessage, now_ms


def parse_audio_message(
    message: Union[WSMessage, Dict[str, Any], str, bytes], logger: logging.Logger
) -> Optional[bytes]:
    """
    Decode the audio carried by an ``audio`` envelope.

    Args:
        message: A WSMessage, its dictionary form, or its JSON text
        logger: Logger receiving diagnostics for malformed input

    Returns:
        The decoded bytes, or None for non-audio or malformed envelopes
    """
    try:
        if isinstance(message, (str, bytes)):
            message = json.loads(message)
        if isinstance(message, dict):
            message = WSMessage(**message)
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, TypeError) as e:
        logger.error(f"Failed to parse audio message: {e}")
        return None

    if not isinstance(message, WSMessage):
        logger.error(f"Unsupported audio message object: {type(message).__name__}")
        return None

    if message.type != MESSAGE_TYPE_AUDIO or not isinstance(message.data, str):
        return None

    try:
        return base64.b64decode(message.data, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.error(f"Failed to decode audio message: {e}")
        return None


class VADResult(NamedTuple):
    has_speech: bool
    confidence: float


class AudioPipeline(EventEmitter):
    """
    Buffers raw audio frames from a live stream.

    Events:
        started(), stopped(), chunk(bytes), buffer(bytes)
    """

    def __init__(
        self,
        config: Optional[AudioPipelineConfig] = None,
        logger: Optional[logging.Logger] = None,
        **overrides: Any,
    ):
        super().__init__()
        base = config or AudioPipelineConfig()
        self.config = AudioPipelineConfig(**{**base.model_dump(), **overrides})
        self.logger = logger or get_logger("audio_pipeline")
        self._audio_buffer: List[bytes] = []
        self._byte_count = 0
        self._is_streaming = False

    @property
    def is_streaming(self) -> bool:
        return self._is_streaming

    def get_is_streaming(self) -> bool:
        return self._is_streaming

    def get_config(self) -> AudioPipelineConfig:
        return self.config.model_copy()

    def start(self) -> None:
        """Start streaming with an empty buffer."""
        self._is_streaming = True
        self._audio_buffer = []
        self._byte_count = 0
        self.logger.info("Audio pipeline started")
        self.emit(EVENT_STARTED)

    def stop(self) -> None:
        """Stop streaming, flushing any audio still buffered."""
        self._is_streaming = False
        if self._audio_buffer:
            self.flush_buffer()
        self.logger.info("Audio pipeline stopped")
        self.emit(EVENT_STOPPED)

    def process_chunk(self, chunk: bytes) -> None:
        """
        Buffer an incoming audio chunk.

        Chunks received while the pipeline is not streaming are dropped.

        Args:
            chunk: Raw audio bytes (16-bit PCM or equivalent)
        """
        if not self._is_streaming:
            self.logger.warning(f"Dropping {len(chunk)} bytes of audio, pipeline not streaming")
            return

        chunk = bytes(chunk)
        self._audio_buffer.append(chunk)
        self._byte_count += len(chunk)

        # Real-time observers see every chunk before buffering decisions
        self.emit(EVENT_CHUNK, chunk)

        if self._buffer_duration_ms() >= self.config.buffer_duration_ms:
            self.flush_buffer()

    # Alias matching the streaming vocabulary used by transports
    process_audio_chunk = process_chunk

    def flush_buffer(self) -> Optional[bytes]:
        """
        Combine buffered chunks in arrival order and clear the buffer.

        Returns:
            The combined bytes, or None when nothing was buffered
        """
        if not self._audio_buffer:
            return None

        combined = b"".join(self._audio_buffer)
        self._audio_buffer = []
        self._byte_count = 0

        self.emit(EVENT_BUFFER, combined)
        return combined

    def convert_format(self, data: bytes, target_format: str) -> bytes:
        """Passthrough: audio is forwarded in the format it was received in."""
        self.logger.debug(f"Converting audio to format: {target_format}")
        return data

    def apply_vad(self, audio_data: bytes) -> VADResult:
        """
        Estimate whether a chunk contains speech from its RMS energy.

        Args:
            audio_data: 16-bit little-endian PCM samples

        Returns:
            VADResult with the speech flag and a confidence in [0, 1]
        """
        if not self.config.enable_vad:
            return VADResult(True, 1.0)

        usable = len(audio_data) - (len(audio_data) % BYTES_PER_SAMPLE)
        if usable == 0:
            return VADResult(False, 0.0)

        samples = np.frombuffer(audio_data[:usable], dtype="<i2").astype(np.float64)
        energy = float(np.sqrt(np.mean(samples * samples)))
        normalized_energy = energy / MAX_SAMPLE_AMPLITUDE
        threshold = self.config.vad_threshold

        return VADResult(
            has_speech=normalized_energy > threshold,
            confidence=min(normalized_energy / (threshold * 2), 1.0),
        )

    def create_audio_message(self, audio_data: bytes) -> WSMessage:
        """Wrap raw audio in a base64 ``audio`` envelope."""
        return WSMessage(
            type=MESSAGE_TYPE_AUDIO,
            data=base64.b64encode(audio_data).decode("utf-8"),
            timestamp=now_ms(),
            id=self._generate_id(),
        )

    def parse_audio_message(
        self, message: Union[WSMessage, Dict[str, Any], str, bytes]
    ) -> Optional[bytes]:
        """Decode an ``audio`` envelope; None for anything else."""
        return parse_audio_message(message, self.logger)

    def _buffer_duration_ms(self) -> float:
        samples = self._byte_count / BYTES_PER_SAMPLE
        return samples / self.config.sample_rate * 1000

    def _generate_id(self) -> str:
        return f"{now_ms()}-{uuid.uuid4().hex[:9]}"
