"""Logs every conversation turn and optionally appends it to a JSON-lines file."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from voxagent.config.logging_config import get_logger
from voxagent.models.message_schemas import Message, TranscriptSegment, now_ms
from voxagent.plugins.base import VoxAgentPlugin

logger = get_logger("transcript")


class TranscriptLoggerPlugin(VoxAgentPlugin):
    name = "transcript-logger"

    def __init__(
        self,
        file_path: Optional[str | Path] = None,
        timestamps: bool = True,
        tag: str = "[transcript]",
    ):
        super().__init__()
        self.file_path = Path(file_path) if file_path else None
        self.timestamps = timestamps
        self.tag = tag
        self.agent = None

    def initialize(self, agent) -> None:
        self.agent = agent
        if self.file_path is not None:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def on_message(self, message: Message) -> None:
        ts = f"[{datetime.now(timezone.utc).isoformat()}] " if self.timestamps else ""
        logger.info(f"{self.tag} {ts}{message.role:<9}: {message.content}")

        if self.file_path is not None:
            line = json.dumps(
                {"ts": now_ms(), "role": message.role, "content": message.content}
            )
            with self.file_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")

    def on_transcript(self, segment: TranscriptSegment) -> None:
        if not segment.is_final:
            logger.debug(f"{self.tag} interim: {segment.text}")
