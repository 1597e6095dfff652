"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "voxagent"

# Default OpenAI model for Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_VOICE = "alloy"

# Audio defaults
DEFAULT_SAMPLE_RATE = 24000
DEFAULT_CHANNELS = 1
DEFAULT_BUFFER_SIZE = 4096
DEFAULT_BUFFER_DURATION_MS = 100
DEFAULT_VAD_THRESHOLD = 0.01
BYTES_PER_SAMPLE = 2  # 16-bit PCM
MAX_SAMPLE_AMPLITUDE = 32768.0

# Audio format constants
AUDIO_FORMAT_PCM16 = "pcm16"
AUDIO_FORMAT_G711_ULAW = "g711_ulaw"
AUDIO_FORMAT_G711_ALAW = "g711_alaw"

# Conversation defaults
DEFAULT_MAX_MESSAGES = 100
DEFAULT_MAX_CONVERSATION_DURATION = 3600  # seconds
DEFAULT_SILENCE_TIMEOUT_MS = 30000

# Reconnection
MAX_RECONNECT_ATTEMPTS = 5
RECONNECT_DELAY = 1.0  # seconds, multiplied by the attempt number

# WebSocket envelope types
MESSAGE_TYPE_AUDIO = "audio"
MESSAGE_TYPE_TEXT = "text"
MESSAGE_TYPE_TRANSCRIPT = "transcript"
MESSAGE_TYPE_RESPONSE = "response"
MESSAGE_TYPE_ERROR = "error"
MESSAGE_TYPE_PING = "ping"
MESSAGE_TYPE_PONG = "pong"
MESSAGE_TYPE_CONFIG = "config"

# Agent / component events
EVENT_STARTED = "started"
EVENT_STOPPED = "stopped"
EVENT_ENDED = "ended"
EVENT_CHUNK = "chunk"
EVENT_BUFFER = "buffer"
EVENT_MESSAGE = "message"
EVENT_TRANSCRIPT = "transcript"
EVENT_CLEARED = "cleared"
EVENT_SILENCE_TIMEOUT = "silenceTimeout"
EVENT_LEAD = "lead"
EVENT_RESPONSE = "response"
EVENT_ERROR = "error"
EVENT_CONNECT = "connect"
EVENT_DISCONNECT = "disconnect"
EVENT_CLIENT_CONNECT = "clientConnect"
EVENT_CLIENT_DISCONNECT = "clientDisconnect"
