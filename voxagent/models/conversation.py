"""
Conversation state management module for VoxAgent.

This module provides the ConversationManager class which owns the turn history of
the single active conversation, its lifecycle (start, end, clear) and a silence
watchdog that fires when no activity has been recorded for a configured window.
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from voxagent.config.constants import (
    EVENT_CLEARED,
    EVENT_ENDED,
    EVENT_MESSAGE,
    EVENT_SILENCE_TIMEOUT,
    EVENT_STARTED,
    EVENT_TRANSCRIPT,
)
from voxagent.config.logging_config import get_logger
from voxagent.config.settings import ConversationManagerConfig
from voxagent.models.events import EventEmitter
from voxagent.models.message_schemas import (
    ConversationState,
    Message,
    MessageRole,
    Metadata,
    TranscriptSegment,
    now_ms,
)


class ConversationManager(EventEmitter):
    """
    Manages the state and history of one voice conversation.

    The manager is inactive until ``start()`` is called. Each ``start()`` creates a
    brand new ConversationState; ``end()`` freezes it. History is append-only apart
    from FIFO trimming to ``max_messages``.

    Events:
        started(state), ended(state), message(message), transcript(segment),
        cleared(), silenceTimeout(state)
    """

    def __init__(
        self,
        config: Optional[ConversationManagerConfig] = None,
        logger: Optional[logging.Logger] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        **overrides: Any,
    ):
        super().__init__()
        base = config or ConversationManagerConfig()
        self.config = base.model_copy(update=overrides) if overrides else base
        self.logger = logger or get_logger("conversation")
        self._loop = loop
        self._silence_timer: Optional[asyncio.TimerHandle] = None
        self._state = self._create_state()
        # Inactive until start() is called
        self._state.is_active = False

    def _create_state(self) -> ConversationState:
        now = now_ms()
        return ConversationState(
            id=f"conv-{now}-{uuid.uuid4().hex[:9]}",
            messages=[],
            is_active=True,
            started_at=now,
            last_activity_at=now,
            metadata={},
        )

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    def start(self) -> ConversationState:
        """Start a new conversation with a fresh id and empty history."""
        self._state = self._create_state()
        self.logger.info(f"Started new conversation: {self._state.id}")
        self.emit(EVENT_STARTED, self.get_state())
        self._reset_silence_timer()
        return self.get_state()

    def end(self) -> ConversationState:
        """Mark the conversation inactive and return its final snapshot."""
        self._state.is_active = False
        self._clear_silence_timer()
        self.logger.info(f"Ended conversation: {self._state.id}")
        snapshot = self.get_state()
        self.emit(EVENT_ENDED, snapshot)
        return snapshot

    def add_message(
        self, role: MessageRole | str, content: str, metadata: Optional[Metadata] = None
    ) -> Optional[Message]:
        """
        Append a message to the history.

        Messages added to an inactive conversation are dropped with a warning.

        Returns:
            The appended message, or None if it was dropped
        """
        if not self._state.is_active:
            self.logger.warning("Attempted to add message to inactive conversation")
            return None

        timestamp = now_ms()
        message = Message(
            role=role,
            content=content,
            timestamp=timestamp,
            metadata=dict(metadata) if (metadata and self.config.enable_metadata) else None,
        )

        self._state.messages.append(message)
        self._state.last_activity_at = timestamp

        # Keep only the most recent max_messages
        if len(self._state.messages) > self.config.max_messages:
            self._state.messages = self._state.messages[-self.config.max_messages:]

        self.emit(EVENT_MESSAGE, message)
        self._reset_silence_timer()

        self.logger.debug(f"Added {message.role} message: {content[:50]}...")
        return message

    def add_transcript(self, segment: TranscriptSegment) -> None:
        """Record a transcript segment; only final segments become user messages."""
        if not self._state.is_active:
            return

        if segment.is_final:
            self.add_message(
                MessageRole.USER,
                segment.text,
                {
                    "transcript_id": segment.id,
                    "confidence": segment.confidence,
                    "speaker": segment.speaker,
                },
            )

        self.emit(EVENT_TRANSCRIPT, segment)

    def get_state(self) -> ConversationState:
        return self._state.model_copy(deep=True)

    def get_messages(self) -> List[Message]:
        return [m.model_copy(deep=True) for m in self._state.messages]

    def get_last_messages(self, count: int) -> List[Message]:
        if count <= 0:
            return []
        return [m.model_copy(deep=True) for m in self._state.messages[-count:]]

    def get_context_messages(self, system_prompt: Optional[str] = None) -> List[Dict[str, str]]:
        """
        Get the history formatted for a language model.

        Args:
            system_prompt: Optional instruction placed first in the list

        Returns:
            List of ``{"role": ..., "content": ...}`` dictionaries
        """
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": MessageRole.SYSTEM.value, "content": system_prompt})
        messages.extend({"role": m.role, "content": m.content} for m in self._state.messages)
        return messages

    def clear(self) -> None:
        """Wipe history and metadata without ending the conversation."""
        self._state.messages = []
        self._state.metadata = {}
        self.logger.info("Conversation history cleared")
        self.emit(EVENT_CLEARED)

    def is_valid(self) -> bool:
        """False if inactive or older than max_conversation_duration."""
        if not self._state.is_active:
            return False

        duration = (now_ms() - self._state.started_at) / 1000
        return duration <= self.config.max_conversation_duration

    def update_metadata(self, metadata: Metadata) -> None:
        if self.config.enable_metadata:
            self._state.metadata = {**self._state.metadata, **metadata}

    def export(self) -> str:
        """Export the conversation state as indented JSON."""
        return json.dumps(self._state.model_dump(mode="json"), indent=2)

    def _reset_silence_timer(self) -> None:
        self._clear_silence_timer()

        if self.config.silence_timeout_ms <= 0:
            return

        try:
            loop = self._loop or asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running event loop, silence watchdog not armed")
            return

        self._silence_timer = loop.call_later(
            self.config.silence_timeout_ms / 1000, self._on_silence_timeout
        )

    def _clear_silence_timer(self) -> None:
        if self._silence_timer is not None:
            self._silence_timer.cancel()
            self._silence_timer = None

    def _on_silence_timeout(self) -> None:
        self._silence_timer = None
        if not self._state.is_active:
            return
        self.logger.warning("Conversation silence timeout reached")
        self.emit(EVENT_SILENCE_TIMEOUT, self.get_state())
