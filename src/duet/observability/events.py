"""Unified event model for bridge observability.

Defines event types for both directions of the bridge: renders flowing
server to client and input events flowing back.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- ``name``: The binding or input name the event concerns

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Render direction
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RenderPublished:
    """A recomputed output was encoded and handed to the transport.

    Attributes:
        session_id: Owning session.
        name: Binding name.
        token: Freshness token of the render.
        payload_bytes: Size of the encoded payload.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    session_id: str
    name: str
    token: int
    payload_bytes: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class RenderSuperseded:
    """A render was dropped because a newer one already won.

    Attributes:
        session_id: Owning session (empty on the client side).
        name: Binding name.
        token: Token of the dropped render.
        latest_token: Token that superseded it.
        stage: Where the drop happened.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    session_id: str
    name: str
    token: int
    latest_token: int
    stage: Literal["channel", "host"]
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class RenderApplied:
    """A rendering script completed for a surface.

    Attributes:
        name: Binding / surface name.
        token: Freshness token that was applied.
        initialized: The ``initialized`` flag the script was invoked with.
        duration_ms: Script invocation time in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    name: str
    token: int
    initialized: bool
    duration_ms: float
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Event direction
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class InputApplied:
    """An input event updated its slot and notified the reactive graph.

    Attributes:
        session_id: Owning session.
        name: Input name.
        mode: Delivery mode of the event.
        revision: Slot revision after the update.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    session_id: str
    name: str
    mode: Literal["VALUE", "EVENT"]
    revision: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class InputCoalesced:
    """A VALUE event repeated the current value and was absorbed."""

    session_id: str
    name: str
    revision: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Errors and sessions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ErrorReported:
    """A failure was reported through the error sink.

    Attributes:
        kind: Exception class name (e.g. ``"DeliveryError"``).
        where: Component that reported it (``"render"``, ``"event"``, ...).
        name: Binding or input name involved, if any.
        message: ``str()`` of the exception.
        timestamp_ns: Monotonic nanosecond timestamp.
        session_id: Session whose sink received it (empty on the client side).

    """

    kind: str
    where: str
    name: str
    message: str
    timestamp_ns: int
    session_id: str = ""


@dataclass(frozen=True, slots=True)
class SessionOpened:
    """A client session was created."""

    session_id: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class SessionClosed:
    """A client session ended and its pending work was discarded.

    Attributes:
        session_id: The closed session.
        discarded: Number of undelivered renders dropped on close.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    session_id: str
    discarded: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type BridgeEvent = (
    RenderPublished
    | RenderSuperseded
    | RenderApplied
    | InputApplied
    | InputCoalesced
    | ErrorReported
    | SessionOpened
    | SessionClosed
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
