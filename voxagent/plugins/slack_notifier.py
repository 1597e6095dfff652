"""Posts a formatted message to a Slack incoming webhook for each captured lead."""

from typing import Optional

import httpx

from voxagent.config.logging_config import get_logger
from voxagent.models.message_schemas import LeadInfo
from voxagent.plugins.base import HTTPPlugin

logger = get_logger("slack-notifier")


class SlackNotifierPlugin(HTTPPlugin):
    name = "slack-notifier"

    def __init__(
        self,
        webhook_url: str,
        notify_on_lead: bool = True,
        emoji: str = ":telephone_receiver:",
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client)
        self.webhook_url = webhook_url
        self.notify_on_lead = notify_on_lead
        self.emoji = emoji

    def initialize(self, agent) -> None:
        logger.info("SlackNotifierPlugin initialized")

    def on_lead(self, lead: LeadInfo) -> None:
        if not self.notify_on_lead:
            return
        self._schedule(self.post_to_slack(self.format_lead(lead)), logger)

    def format_lead(self, lead: LeadInfo) -> str:
        lines = [f"{self.emoji} *New Lead Captured*"]
        for label, value in (
            ("Name", lead.name),
            ("Email", lead.email),
            ("Phone", lead.phone),
            ("Company", lead.company),
        ):
            if value:
                lines.append(f"• *{label}:* {value}")
        return "\n".join(lines)

    async def post_to_slack(self, text: str) -> bool:
        try:
            await self._post_json(self.webhook_url, {"text": text})
        except httpx.HTTPError as e:
            logger.error(f"Slack notification failed: {e}")
            return False
        logger.info("Slack notification sent")
        return True
