"""
Minimal observer list used by the core components.

Handlers are invoked synchronously, in registration order, on the thread
that emitted the event.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

from voxagent.config.constants import LOGGER_NAME

logger = logging.getLogger(f"{LOGGER_NAME}.events")

Handler = Callable[..., Any]


class EventEmitter:
    """Keeps an ordered list of handlers per event name."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> Handler:
        self._handlers[event].append(handler)
        return handler

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every handler registered for ``event``.

        A failing handler is logged and does not prevent the remaining
        handlers from running.

        Returns:
            bool: True if at least one handler was registered
        """
        handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            try:
                handler(*args)
            except Exception as e:
                logger.error(f"Error in '{event}' handler: {e}", exc_info=True)
        return bool(handlers)
