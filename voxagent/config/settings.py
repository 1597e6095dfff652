"""
Configuration models for the VoxAgent components.

Every component accepts a pydantic config model (or keyword overrides of one).
``AgentSettings`` collects the process-wide settings read from the environment
once at startup, optionally from a ``.env`` file.
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field

from voxagent.config.constants import (
    AUDIO_FORMAT_PCM16,
    DEFAULT_BUFFER_DURATION_MS,
    DEFAULT_BUFFER_SIZE,
    DEFAULT_CHANNELS,
    DEFAULT_MAX_CONVERSATION_DURATION,
    DEFAULT_MAX_MESSAGES,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_SAMPLE_RATE,
    DEFAULT_SILENCE_TIMEOUT_MS,
    DEFAULT_VAD_THRESHOLD,
    DEFAULT_VOICE,
    MAX_RECONNECT_ATTEMPTS,
    RECONNECT_DELAY,
)

AudioFormat = Literal["pcm16", "g711_ulaw", "g711_alaw"]


class AudioConfig(BaseModel):
    """Audio stream configuration."""

    sample_rate: int = Field(DEFAULT_SAMPLE_RATE, gt=0)
    channels: int = Field(DEFAULT_CHANNELS, gt=0)
    format: AudioFormat = AUDIO_FORMAT_PCM16
    buffer_size: Optional[int] = DEFAULT_BUFFER_SIZE


class AudioPipelineConfig(AudioConfig):
    """Audio pipeline settings: stream format plus VAD and flush window."""

    enable_vad: bool = True
    vad_threshold: float = Field(DEFAULT_VAD_THRESHOLD, gt=0.0)
    buffer_duration_ms: float = Field(DEFAULT_BUFFER_DURATION_MS, gt=0)


class ConversationManagerConfig(BaseModel):
    max_messages: int = Field(DEFAULT_MAX_MESSAGES, gt=0)
    max_conversation_duration: float = Field(
        DEFAULT_MAX_CONVERSATION_DURATION, description="Maximum duration in seconds"
    )
    silence_timeout_ms: int = Field(
        DEFAULT_SILENCE_TIMEOUT_MS, ge=0, description="0 disables the silence watchdog"
    )
    enable_metadata: bool = True


class LeadExtractorConfig(BaseModel):
    extract_on_every_message: bool = True
    extract_on_conversation_end: bool = True
    custom_extractors: List[Callable[[str], Dict[str, Any]]] = Field(default_factory=list)


class VoxAgentConfig(BaseModel):
    """Configuration of the VoxAgent orchestrator."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    provider: Any = Field(..., description="An AIProvider implementation")
    voice: str = DEFAULT_VOICE
    system_prompt: Optional[str] = None
    audio_config: Optional[Dict[str, Any]] = None
    on_transcript: Optional[Callable[..., Any]] = None
    on_response: Optional[Callable[..., Any]] = None
    on_lead: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None
    on_connect: Optional[Callable[..., Any]] = None
    enable_lead_extraction: bool = True
    max_conversation_duration: float = DEFAULT_MAX_CONVERSATION_DURATION
    silence_timeout_ms: int = Field(DEFAULT_SILENCE_TIMEOUT_MS, ge=0)
    max_reconnect_attempts: int = Field(MAX_RECONNECT_ATTEMPTS, ge=0)
    reconnect_delay: float = Field(RECONNECT_DELAY, ge=0.0, description="Seconds")


class AgentSettings(BaseModel):
    """Process-wide settings read from environment variables."""

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    openai_api_key: Optional[str] = None
    openai_realtime_model: str = DEFAULT_REALTIME_MODEL
    voice: str = DEFAULT_VOICE
    system_prompt: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "AgentSettings":
        """Load settings from the environment, reading ``.env`` first if present."""
        env_path = env_file or Path(".") / ".env"
        if env_path.exists():
            dotenv.load_dotenv(env_path)

        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_realtime_model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
            voice=os.getenv("VOXAGENT_VOICE", DEFAULT_VOICE),
            system_prompt=os.getenv("VOXAGENT_SYSTEM_PROMPT") or None,
        )
