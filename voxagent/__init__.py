"""
VoxAgent - real-time voice agents with lead capture

VoxAgent accepts streaming audio from WebSocket clients, forwards it to a
conversational AI provider such as the OpenAI Realtime API, keeps the
conversation history, and extracts contact details (name, email, phone,
company) from what callers say.

Key Components:
- bot: AudioPipeline, LeadExtractor and the VoxAgent orchestrator
- config: Constants, logging setup and pydantic configuration models
- handlers: Handlers for the client WebSocket envelopes
- models: Data model, event emitter and ConversationManager
- plugins: Plugin contract and built-in plugins
- services: AIProvider contract and the OpenAI Realtime provider
- websocket_manager: Per-client WebSocket loop and message routing

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - PORT: Port to run the server on (default 8000)
   - HOST: Host to bind the server to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python -m voxagent.main
   ```

3. Or embed the agent:
   ```python
   agent = VoxAgent(provider=OpenAIRealtimeProvider(), system_prompt="You are helpful.")
   agent.on("lead", lambda lead, state: print(lead))
   await agent.listen(8080)
   ```
"""

VERSION = "0.1.0"

from voxagent.bot.agent import VoxAgent  # noqa: E402
from voxagent.bot.audio_pipeline import AudioPipeline  # noqa: E402
from voxagent.bot.lead_extractor import LeadExtractor  # noqa: E402
from voxagent.config.settings import (  # noqa: E402
    AgentSettings,
    AudioConfig,
    AudioPipelineConfig,
    ConversationManagerConfig,
    LeadExtractorConfig,
    VoxAgentConfig,
)
from voxagent.models.conversation import ConversationManager  # noqa: E402
from voxagent.models.message_schemas import (  # noqa: E402
    ConversationState,
    LeadConfidence,
    LeadInfo,
    Message,
    MessageRole,
    ProviderResponse,
    TranscriptSegment,
    WSMessage,
)
from voxagent.plugins.base import VoxAgentPlugin  # noqa: E402
from voxagent.services.provider import (  # noqa: E402
    AgentNotConnectedError,
    AIProvider,
    ProviderError,
    VoxAgentError,
)
from voxagent.services.realtime_api import OpenAIRealtimeProvider  # noqa: E402

__all__ = [
    "VERSION",
    "VoxAgent",
    "AudioPipeline",
    "LeadExtractor",
    "ConversationManager",
    "AgentSettings",
    "AudioConfig",
    "AudioPipelineConfig",
    "ConversationManagerConfig",
    "LeadExtractorConfig",
    "VoxAgentConfig",
    "ConversationState",
    "LeadConfidence",
    "LeadInfo",
    "Message",
    "MessageRole",
    "ProviderResponse",
    "TranscriptSegment",
    "WSMessage",
    "VoxAgentPlugin",
    "AIProvider",
    "AgentNotConnectedError",
    "ProviderError",
    "VoxAgentError",
    "OpenAIRealtimeProvider",
]
