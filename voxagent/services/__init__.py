"""
AI provider integrations.

Key components:
- provider: the AIProvider contract and VoxAgent exception hierarchy
- realtime_api: OpenAIRealtimeProvider over the OpenAI Realtime WebSocket API
"""
