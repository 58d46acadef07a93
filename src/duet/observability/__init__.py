"""Bridge observability — one event model for both directions of the bridge.

Records:
- **Render direction**: publishes, superseded renders, script invocations
- **Event direction**: applied and coalesced input updates
- **Failures**: everything reported through the error sink
- **Sessions**: open / close

All events are frozen dataclasses with nanosecond timestamps, safe for
concurrent production from multiple sessions.

Quick Start:
    >>> from duet.observability import BridgeCollector, EventLog
    >>> log = EventLog()
    >>> collector = BridgeCollector(log)
    >>> collector.record_session_opened("s1")
    >>> len(log)
    1

"""

from duet.observability.collector import BridgeCollector
from duet.observability.events import (
    BridgeEvent,
    ErrorReported,
    InputApplied,
    InputCoalesced,
    RenderApplied,
    RenderPublished,
    RenderSuperseded,
    SessionClosed,
    SessionOpened,
    now_ns,
)
from duet.observability.log import EventLog
from duet.observability.sink import CollectorErrorSink, ErrorSink, format_error_event

__all__ = [
    "BridgeCollector",
    "BridgeEvent",
    "CollectorErrorSink",
    "ErrorReported",
    "ErrorSink",
    "EventLog",
    "InputApplied",
    "InputCoalesced",
    "RenderApplied",
    "RenderPublished",
    "RenderSuperseded",
    "SessionClosed",
    "SessionOpened",
    "format_error_event",
    "now_ns",
]
