"""
Data model and state management for VoxAgent.

Key components:
- message_schemas: pydantic models for messages, conversation state, transcript
  segments, leads and the WebSocket envelope
- events: the EventEmitter observer helper shared by the components
- conversation: ConversationManager, owner of the active conversation
"""
