"""
Plugin contract for extending VoxAgent.

Plugins are registered with ``VoxAgent.use()``, which calls ``initialize`` right
away. Hooks run synchronously from the agent's internal events; plugins that need
I/O schedule it on the running event loop themselves.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Coroutine, Dict, Optional, Set

import httpx

from voxagent.models.message_schemas import LeadInfo, Message, TranscriptSegment

if TYPE_CHECKING:
    from voxagent.bot.agent import VoxAgent


class VoxAgentPlugin(ABC):
    """Base class for VoxAgent plugins. Hooks default to no-ops."""

    name: str = "plugin"

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @abstractmethod
    def initialize(self, agent: "VoxAgent") -> None:
        """Called once when the plugin is registered."""

    def on_message(self, message: Message) -> None:
        pass

    def on_transcript(self, segment: TranscriptSegment) -> None:
        pass

    def on_lead(self, lead: LeadInfo) -> None:
        pass

    async def destroy(self) -> None:
        """Wait for background work started by the plugin."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _schedule(self, coro: Coroutine, logger: logging.Logger) -> Optional[asyncio.Task]:
        """Run ``coro`` in the background on the running loop."""
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning(f"{self.name}: no running event loop, background work skipped")
            return None

        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


class HTTPPlugin(VoxAgentPlugin):
    """
    Base class for plugins that POST JSON to HTTP endpoints.

    A shared ``httpx.AsyncClient`` may be injected; otherwise one is created on
    first use and closed by ``destroy()``.
    """

    timeout: float = 10.0

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _post_json(
        self, url: str, payload: Any, headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """POST ``payload`` as JSON; raises httpx.HTTPStatusError on a non-2xx reply."""
        response = await self._get_client().post(url, json=payload, headers=headers)
        response.raise_for_status()
        return response

    async def destroy(self) -> None:
        await super().destroy()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
