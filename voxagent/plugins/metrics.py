"""
Per-session conversation metrics.

Tracks turn counts, rough token estimates and whether a lead was captured, and
reports a summary when the agent disconnects.
"""

import math
from typing import Optional

import httpx
from pydantic import BaseModel

from voxagent.config.constants import EVENT_DISCONNECT
from voxagent.config.logging_config import get_logger
from voxagent.models.message_schemas import LeadInfo, Message, MessageRole, now_ms
from voxagent.plugins.base import HTTPPlugin

logger = get_logger("metrics")

CHARS_PER_TOKEN = 4


class SessionMetrics(BaseModel):
    session_id: str
    started_at: int
    ended_at: Optional[int] = None
    duration_ms: Optional[int] = None
    turn_count: int = 0
    user_turns: int = 0
    assistant_turns: int = 0
    lead_captured: bool = False
    estimated_input_tokens: int = 0
    estimated_output_tokens: int = 0


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class MetricsPlugin(HTTPPlugin):
    name = "metrics"

    def __init__(
        self,
        report_url: Optional[str] = None,
        print_summary: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client)
        self.report_url = report_url
        self.print_summary = print_summary
        self.metrics = self._create_metrics()

    def _create_metrics(self) -> SessionMetrics:
        started_at = now_ms()
        return SessionMetrics(session_id=f"sess-{started_at}", started_at=started_at)

    def initialize(self, agent) -> None:
        self.metrics = self._create_metrics()
        agent.on(EVENT_DISCONNECT, self.finalize)

    def on_message(self, message: Message) -> None:
        self.metrics.turn_count += 1
        if message.role == MessageRole.USER:
            self.metrics.user_turns += 1
            self.metrics.estimated_input_tokens += estimate_tokens(message.content)
        elif message.role == MessageRole.ASSISTANT:
            self.metrics.assistant_turns += 1
            self.metrics.estimated_output_tokens += estimate_tokens(message.content)

    def on_lead(self, lead: LeadInfo) -> None:
        self.metrics.lead_captured = True

    def get_metrics(self) -> SessionMetrics:
        return self.metrics.model_copy()

    def finalize(self) -> SessionMetrics:
        """Close the session metrics, log the summary and schedule the report."""
        self.metrics.ended_at = now_ms()
        self.metrics.duration_ms = self.metrics.ended_at - self.metrics.started_at

        if self.print_summary:
            m = self.metrics
            logger.info(
                f"Session metrics: duration {m.duration_ms / 1000:.1f}s, "
                f"turns {m.turn_count} ({m.user_turns} user / {m.assistant_turns} assistant), "
                f"est tokens ~{m.estimated_input_tokens} in / ~{m.estimated_output_tokens} out, "
                f"lead {'captured' if m.lead_captured else 'not captured'}"
            )

        if self.report_url:
            self._schedule(self.report(), logger)
        return self.get_metrics()

    async def report(self) -> bool:
        try:
            await self._post_json(self.report_url, self.metrics.model_dump())
        except httpx.HTTPError as e:
            logger.error(f"Failed to report metrics: {e}")
            return False
        return True
