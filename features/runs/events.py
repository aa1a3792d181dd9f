"""
Run event sink — an explicit per-run event channel.

One sink is created per orchestrator run. Subscribers are plain callables
invoked synchronously in emit order; the history is kept so API callers can
read the events of a finished in-process run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

log = logging.getLogger(__name__)

Subscriber = Callable[[dict], None]


class RunEventSink:

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._subscribers: list[Subscriber] = []
        self.history: list[dict] = []
        self.closed = False

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def emit(self, event_type: str, **data) -> dict:
        event = {"type": event_type, "timestamp": self._clock().isoformat(), **data}
        if self.closed:
            log.debug("Dropping %s event on closed sink", event_type)
            return event
        self.history.append(event)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                log.warning("Event subscriber failed on %s: %s", event_type, e)
        return event

    def close(self) -> None:
        """Detach subscribers; history stays readable."""
        self._subscribers.clear()
        self.closed = True
