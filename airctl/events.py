"""Events pushed by the device and the observer interface that delivers them."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """A notification received on the reverse channel."""

    raw: bytes
    content_type: Optional[str] = None
    document: Any = None

    @property
    def payload(self) -> Any:
        """The decoded document, or the raw bytes if it could not be decoded."""
        return self.raw if self.document is None else self.document

    @property
    def state(self) -> Optional[str]:
        if isinstance(self.document, dict):
            return self.document.get("state")
        return None


EventHandler = Callable[[Event], None]


class EventEmitter:
    """Ordered list of event handlers, called synchronously on emit."""

    def __init__(self):
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> EventHandler:
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event: Event) -> None:
        # Handlers may unsubscribe while we iterate.
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed", handler)

    def __len__(self) -> int:
        return len(self._handlers)
