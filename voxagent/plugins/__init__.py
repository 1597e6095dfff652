"""
Built-in VoxAgent plugins.

Third-party plugins subclass ``VoxAgentPlugin`` and are registered with
``VoxAgent.use()``.
"""

from voxagent.plugins.base import HTTPPlugin, VoxAgentPlugin
from voxagent.plugins.lead_webhook import LeadWebhookPlugin
from voxagent.plugins.metrics import MetricsPlugin, SessionMetrics
from voxagent.plugins.slack_notifier import SlackNotifierPlugin
from voxagent.plugins.transcript_logger import TranscriptLoggerPlugin

__all__ = [
    "HTTPPlugin",
    "VoxAgentPlugin",
    "LeadWebhookPlugin",
    "MetricsPlugin",
    "SessionMetrics",
    "SlackNotifierPlugin",
    "TranscriptLoggerPlugin",
]
