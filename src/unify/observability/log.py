"""Bounded, thread-safe store for build events.

Holds the most recent ``StackEvent`` objects in a ring buffer and answers
the questions a build report asks: which pages failed, which layouts were
missing, what happened to one file.

Thread Safety:
    All methods take a ``threading.Lock``.  The watcher thread and the
    build loop may append concurrently.

"""

import threading
from collections import deque
from typing import Any

from unify.observability.events import CompositionEvent, LayoutMissing, StackEvent


def _subject(event: StackEvent) -> str:
    """The file an event is about."""
    match event:
        case CompositionEvent(path=path) | LayoutMissing(path=path):
            return path
        case _:
            return getattr(event, "source", None) or getattr(event, "trigger", "")


class EventLog:
    """Ring buffer of build events.

    Args:
        max_events: Oldest events are discarded beyond this many.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 10_000) -> None:
        self._max_events = max_events
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        path: str | None = None,
        limit: int = 100,
    ) -> list[StackEvent]:
        """Query events with optional filters.

        Args:
            event_type: Only return events of this type.
            since_ns: Only return events recorded at or after this
                monotonic timestamp.
            path: Only return events whose subject file contains this
                substring.
            limit: Maximum number of events to return.

        Returns:
            Matching events, most recent first.

        """
        with self._lock:
            snapshot = list(self._events)

        results: list[StackEvent] = []
        for event in reversed(snapshot):
            if len(results) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if event.timestamp_ns < since_ns:
                continue
            if path is not None and path not in _subject(event):
                continue
            results.append(event)
        return results

    def failures(self, limit: int = 100) -> list[CompositionEvent]:
        """Pages whose most recent composition failed, most recent first."""
        latest: dict[str, CompositionEvent] = {}
        for event in self.query(event_type=CompositionEvent, limit=self._max_events):
            if isinstance(event, CompositionEvent):
                latest.setdefault(event.path, event)
        return [e for e in latest.values() if not e.success][:limit]

    def missing_layouts(self) -> list[str]:
        """Unique missing layout/component paths, in first-seen order."""
        with self._lock:
            snapshot = list(self._events)
        seen = [e.path for e in snapshot if isinstance(e, LayoutMissing)]
        return list(dict.fromkeys(seen))

    def clear(self) -> int:
        """Drop every event, returning how many there were."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def stats(self) -> dict[str, Any]:
        """Counts by event type."""
        with self._lock:
            events = list(self._events)

        by_type: dict[str, int] = {}
        for event in events:
            name = type(event).__name__
            by_type[name] = by_type.get(name, 0) + 1

        return {
            "total": len(events),
            "max_events": self._max_events,
            "by_type": by_type,
        }
