"""
Pydantic models for the VoxAgent data model and WebSocket envelope.

This module defines structured data models for conversation history, transcript
segments, extracted leads and the JSON envelope exchanged with WebSocket clients,
providing type validation and documentation.
"""

import json
import time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from voxagent.config.constants import (
    AUDIO_FORMAT_G711_ALAW,
    AUDIO_FORMAT_G711_ULAW,
    AUDIO_FORMAT_PCM16,
)
from voxagent.config.settings import AudioConfig, AudioFormat  # noqa: F401

# Metadata values are restricted to JSON scalars
MetadataValue = Union[str, int, float, bool, None]
Metadata = Dict[str, MetadataValue]

SUPPORTED_AUDIO_FORMATS = [AUDIO_FORMAT_PCM16, AUDIO_FORMAT_G711_ULAW, AUDIO_FORMAT_G711_ALAW]

WSMessageType = Literal[
    "audio", "text", "transcript", "response", "error", "ping", "pong", "config"
]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class MessageRole(str, Enum):
    """Role of a participant in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"


class Message(BaseModel):
    """A single turn in the conversation history. Immutable once created."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: MessageRole
    content: str
    timestamp: Optional[int] = Field(None, description="Epoch milliseconds")
    metadata: Optional[Metadata] = None


class ConversationState(BaseModel):
    """State of one conversation owned by a ConversationManager."""

    id: str = Field(..., description="Unique conversation identifier")
    messages: List[Message] = Field(default_factory=list)
    is_active: bool = True
    started_at: int = Field(default_factory=now_ms)
    last_activity_at: int = Field(default_factory=now_ms)
    metadata: Metadata = Field(default_factory=dict)


class TranscriptSegment(BaseModel):
    """One unit of speech-to-text output, interim or final."""

    id: str
    text: str
    is_final: bool
    timestamp: int = Field(default_factory=now_ms)
    speaker: Optional[str] = None
    confidence: Optional[float] = None


class LeadConfidence(BaseModel):
    """Per-field confidence scores in [0, 1]."""

    name: Optional[float] = Field(None, ge=0.0, le=1.0)
    email: Optional[float] = Field(None, ge=0.0, le=1.0)
    phone: Optional[float] = Field(None, ge=0.0, le=1.0)


class LeadInfo(BaseModel):
    """Contact information inferred from a caller's speech."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None
    confidence: LeadConfidence = Field(default_factory=LeadConfidence)


# Fields a custom extractor is allowed to populate
LEAD_FIELDS = ("name", "email", "phone", "company", "notes")


class ProviderResponse(BaseModel):
    """A (partial or complete) response produced by an AI provider."""

    text: str
    audio: Optional[bytes] = None
    done: bool = False
    metadata: Optional[Metadata] = None


class WSMessage(BaseModel):
    """Envelope exchanged with WebSocket clients."""

    type: WSMessageType
    data: Any = None
    timestamp: Optional[int] = None
    id: Optional[str] = None

    @field_validator("timestamp")
    def validate_timestamp(cls, v):
        """Validate that the timestamp is not negative."""
        if v is not None and v < 0:
            raise ValueError("Timestamp cannot be negative")
        return v

    def to_json(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True))
