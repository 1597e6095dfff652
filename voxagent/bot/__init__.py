"""
Core voice-agent components.

Key components:
- AudioPipeline: buffers inbound PCM audio into fixed windows and runs energy VAD
- LeadExtractor: infers contact details from user messages
- VoxAgent: orchestrates the components, an AI provider and plugins
"""

from voxagent.bot.agent import VoxAgent
from voxagent.bot.audio_pipeline import AudioPipeline
from voxagent.bot.lead_extractor import LeadExtractor

__all__ = ["VoxAgent", "AudioPipeline", "LeadExtractor"]
