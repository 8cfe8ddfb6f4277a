"""Tracks the playback state reported by the device."""

import logging
from collections.abc import Callable
from typing import Optional

from .events import Event, EventEmitter

logger = logging.getLogger(__name__)

STOPPED = "stopped"


class StateTracker:
    """Keeps the last state the device reported and reacts to ``stopped``.

    The state is an open string: the device may report values such as
    ``playing``, ``paused`` or ``loading`` and anything else it chooses.
    Only ``stopped`` is acted upon, by calling ``on_stopped``.
    """

    def __init__(self, emitter: EventEmitter, on_stopped: Callable[[], None]):
        self.state: Optional[str] = None
        self._emitter = emitter
        self._on_stopped = on_stopped
        emitter.subscribe(self.handle_event)

    def handle_event(self, event: Event) -> None:
        state = event.state
        if not state:
            return
        if state != self.state:
            logger.info("Device state changed: %s -> %s", self.state, state)
        self.state = state
        if state == STOPPED:
            self._on_stopped()

    def detach(self) -> None:
        self._emitter.unsubscribe(self.handle_event)
