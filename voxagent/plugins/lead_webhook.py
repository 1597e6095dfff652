"""POSTs each newly captured lead to an HTTP endpoint."""

import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional, Set

import httpx

from voxagent.config.logging_config import get_logger
from voxagent.models.message_schemas import LeadInfo
from voxagent.plugins.base import HTTPPlugin

logger = get_logger("lead-webhook")


class LeadWebhookPlugin(HTTPPlugin):
    """
    Send ``{"lead": ..., "timestamp": ...}`` to ``url`` whenever a lead is captured.

    Leads are deduplicated on their ``email:phone`` pair. Failed deliveries are
    retried up to ``retries`` attempts in total, waiting ``retry_delay * 2**(n-1)``
    seconds after attempt n.
    """

    name = "lead-webhook"

    def __init__(
        self,
        url: str,
        secret: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        retries: int = 3,
        retry_delay: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client)
        self.url = url
        self.secret = secret
        self.headers = dict(headers or {})
        self.retries = retries
        self.retry_delay = retry_delay
        self._seen: Set[str] = set()

    def initialize(self, agent) -> None:
        logger.info(f"LeadWebhookPlugin -> {self.url}")

    def on_lead(self, lead: LeadInfo) -> None:
        key = f"{lead.email or ''}:{lead.phone or ''}"
        if key in self._seen:
            return
        self._seen.add(key)

        self._schedule(self.send_webhook(lead), logger)

    def _request_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", **self.headers}
        if self.secret:
            headers["Authorization"] = f"Bearer {self.secret}"
        return headers

    async def send_webhook(self, lead: LeadInfo) -> bool:
        """
        Deliver one lead, retrying with exponential backoff.

        Returns:
            True if the endpoint accepted the lead, False after the last failed attempt
        """
        payload = {
            "lead": lead.model_dump(mode="json", exclude_none=True),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        for attempt in range(1, self.retries + 1):
            try:
                await self._post_json(self.url, payload, headers=self._request_headers())
                logger.info(f"Lead posted (attempt {attempt})")
                return True
            except httpx.HTTPError as e:
                logger.error(f"Webhook failed (attempt {attempt}): {e}")
                if attempt < self.retries:
                    await asyncio.sleep(self.retry_delay * 2 ** (attempt - 1))
        return False
