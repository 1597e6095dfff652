"""
Handlers for WebSocket envelopes exchanged with VoxAgent clients.

Key components:
- stream_handlers: Decodes ``audio`` envelopes and forwards the raw bytes to the
  audio pipeline callback.
- session_handlers: Answers ``ping``, applies ``config`` updates and forwards
  ``text`` messages to the agent.

Each handler has the signature ``(message, client, manager)`` and may return a
WSMessage that the WebSocketManager sends back to the client.
"""
