"""
FastAPI application for VoxAgent.

``create_app`` builds the app that exposes a WebSocketManager on ``/ws`` together
with health and info routes. Running this module starts an agent backed by the
OpenAI Realtime API with settings read from the environment.

Usage:
    python -m voxagent.main [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import asyncio
from typing import TYPE_CHECKING, Optional

from fastapi import FastAPI, WebSocket

from voxagent import VERSION
from voxagent.config.logging_config import configure_logging
from voxagent.config.settings import AgentSettings
from voxagent.websocket_manager import WebSocketManager

if TYPE_CHECKING:
    from voxagent.bot.agent import VoxAgent


def create_app(websocket_manager: WebSocketManager, agent: Optional["VoxAgent"] = None) -> FastAPI:
    """
    Build the FastAPI application serving ``websocket_manager``.

    Args:
        websocket_manager: Transport that handles every ``/ws`` connection
        agent: Optional agent whose state is reported by ``/health``
    """
    app = FastAPI(
        title="VoxAgent",
        description="Real-time voice agent with lead capture",
        version=VERSION,
    )

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Audio, text, ping and config envelopes from voice clients."""
        await websocket_manager.handle_websocket(websocket)

    @app.get("/health")
    async def health_check():
        status = {
            "status": "healthy",
            "active_connections": websocket_manager.get_client_count(),
        }
        if agent is not None:
            status["provider"] = agent.provider.name
            status["provider_connected"] = agent.is_connected
            status["conversation_active"] = agent.conversation_manager.is_active
        return status

    @app.get("/")
    async def root():
        return {
            "name": "VoxAgent",
            "description": "Real-time voice agent with lead capture",
            "version": VERSION,
            "endpoints": {
                "/ws": "WebSocket endpoint for voice clients",
                "/health": "Health check endpoint",
            },
        }

    return app


def parse_args(settings: AgentSettings):
    parser = argparse.ArgumentParser(description="Start the VoxAgent server")
    parser.add_argument("--port", type=int, default=settings.port,
                        help="Port to run the server on (default: PORT env var or 8000)")
    parser.add_argument("--host", default=settings.host,
                        help="Host to bind the server to (default: HOST env var or 0.0.0.0)")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )
    return parser.parse_args()


async def run(settings: AgentSettings, port: int, host: str) -> None:
    from voxagent.bot.agent import VoxAgent
    from voxagent.plugins import MetricsPlugin, TranscriptLoggerPlugin
    from voxagent.services.realtime_api import OpenAIRealtimeProvider

    provider = OpenAIRealtimeProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_realtime_model,
        voice=settings.voice,
        instructions=settings.system_prompt or "",
    )
    agent = VoxAgent(provider=provider, voice=settings.voice, system_prompt=settings.system_prompt)
    agent.use(TranscriptLoggerPlugin()).use(MetricsPlugin())

    await agent.listen(port, host)
    try:
        await agent.wait_closed()
    finally:
        await agent.stop()


def main():
    settings = AgentSettings.from_env()
    args = parse_args(settings)
    logger = configure_logging(args.log_level)

    if not settings.openai_api_key:
        logger.error("OPENAI_API_KEY environment variable not set")
        raise SystemExit(1)

    logger.info(f"Starting VoxAgent on ws://{args.host}:{args.port}/ws")
    asyncio.run(run(settings, args.port, args.host))


if __name__ == "__main__":
    main()
