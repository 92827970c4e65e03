"""Wire — lifecycle events from the scheduler and router to observers.

The CLI subscribes to print progress; tests subscribe to assert on what
happened without reaching into scheduler internals.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any


class EventType(enum.Enum):
    SUBMITTED = "submitted"
    PHASE = "phase"
    STEP = "step"
    PARKED = "parked"
    WOKEN = "woken"
    COMPLETED = "completed"
    DROPPED = "dropped"
    ERROR = "error"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


class Wire:
    """Async message bus: agent -> subscribers.

    Single-producer, multi-consumer broadcast. ``send`` must be called on
    the event loop thread.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: WireEvent) -> None:
        """Send an event to all subscribers.

        Silently drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        for q in self._subscribers:
            q.put_nowait(event)

    def emit(self, type: EventType, **data: Any) -> None:
        self.send(WireEvent(type=type, data=data))

    def send_error(self, error: str, activity_id: str | None = None) -> None:
        self.emit(EventType.ERROR, error=error, activity_id=activity_id)

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        if self._closed:
            return
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)
