"""
Configuration module for the VoxAgent voice orchestration layer.

Key components:
- constants: Application-wide constants such as the logger name, audio
  defaults, WebSocket envelope types and event names.
- logging_config: Console and rotating-file logging for the ``voxagent``
  logger and its per-component children.
- settings: Pydantic configuration models for each component and the
  environment-backed ``AgentSettings``.

Usage examples:
```python
from voxagent.config.logging_config import configure_logging, get_logger
logger = configure_logging()

from voxagent.config.settings import AudioPipelineConfig
config = AudioPipelineConfig(sample_rate=16000, enable_vad=False)
```
"""
