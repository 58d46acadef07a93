"""Event log — bounded store of bridge events for the stats endpoint and tests.

The log is shared by every session of a server, so most reads are scoped:
``for_session()`` replays one client's history in order, ``query()`` filters
across sessions newest-first, and ``stats()`` breaks counts down by kind and
by session.

Thread Safety:
    One ``threading.Lock`` guards the ring buffer.  Readers copy under the
    lock and filter outside it.

"""

import threading
from collections import Counter, deque
from collections.abc import Callable, Iterable
from typing import Any

from duet.observability.events import BridgeEvent, ErrorReported

type EventFilter = Callable[[BridgeEvent], bool]


def _matches(
    event_type: type | None,
    since_ns: int,
    name: str | None,
    session_id: str | None,
) -> EventFilter:
    def check(event: BridgeEvent) -> bool:
        if event_type is not None and not isinstance(event, event_type):
            return False
        if event.timestamp_ns < since_ns:
            return False
        if name is not None and getattr(event, "name", None) != name:
            return False
        return session_id is None or getattr(event, "session_id", None) == session_id

    return check


class EventLog:
    """Ring buffer of ``BridgeEvent`` objects; the oldest fall off when full.

    Args:
        max_events: Capacity of the buffer.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 10_000) -> None:
        self._max_events = max_events
        self._events: deque[BridgeEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    @property
    def max_events(self) -> int:
        return self._max_events

    def _snapshot(self) -> list[BridgeEvent]:
        with self._lock:
            return list(self._events)

    # ----- Writes -----

    def append(self, event: BridgeEvent) -> None:
        with self._lock:
            self._events.append(event)

    def append_many(self, events: Iterable[BridgeEvent]) -> None:
        with self._lock:
            self._events.extend(events)

    def clear(self) -> int:
        """Drop everything; returns how many events were dropped."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
        return count

    # ----- Reads -----

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        name: str | None = None,
        session_id: str | None = None,
        limit: int = 100,
    ) -> list[BridgeEvent]:
        """Matching events, newest first, at most *limit* of them.

        Args:
            event_type: Keep only instances of this event class.
            since_ns: Keep only events stamped at or after this time.
            name: Keep only events about this binding or input name.
            session_id: Keep only events of this session.
            limit: Maximum number of events returned.

        """
        keep = _matches(event_type, since_ns, name, session_id)
        results: list[BridgeEvent] = []
        for event in reversed(self._snapshot()):
            if len(results) >= limit:
                break
            if keep(event):
                results.append(event)
        return results

    def recent(self, n: int = 20) -> list[BridgeEvent]:
        """The *n* most recent events, oldest first."""
        return self._snapshot()[-n:]

    def for_session(self, session_id: str) -> list[BridgeEvent]:
        """Every retained event of one session, in the order it happened."""
        keep = _matches(None, 0, None, session_id)
        return [event for event in self._snapshot() if keep(event)]

    def errors(self, *, session_id: str | None = None) -> list[ErrorReported]:
        """Reported errors, oldest first."""
        keep = _matches(ErrorReported, 0, None, session_id)
        return [event for event in self._snapshot() if keep(event)]  # type: ignore[misc]

    def stats(self) -> dict[str, Any]:
        """Counts for the stats endpoint."""
        events = self._snapshot()
        by_session = Counter(
            sid for sid in (getattr(e, "session_id", "") for e in events) if sid
        )
        return {
            "total": len(events),
            "max_events": self._max_events,
            "by_type": dict(Counter(type(e).__name__ for e in events)),
            "by_session": dict(by_session),
            "errors": sum(1 for e in events if isinstance(e, ErrorReported)),
        }
