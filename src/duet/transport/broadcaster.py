"""SSE broadcaster — pushes render envelopes to connected browsers.

Manages SSE connections per session and coordinates render delivery.  When
a session's render channel publishes, the broadcaster serializes the
``RenderMessage`` into an envelope once and enqueues it, as a Chirp
``SSEEvent``, on every connection subscribed to that session.

Each connection has a mailbox keyed by binding name: a render that arrives
while an older render for the same binding is still undelivered replaces it
in place, so at most one render per binding is ever in flight.
"""

from __future__ import annotations

import asyncio
import itertools
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from duet._errors import DeliveryError
from duet.wire.envelope import encode_envelope

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from duet.wire.envelope import RenderMessage

RENDER_EVENT = "duet:render"
SESSION_EVENT = "duet:session"
ERROR_EVENT = "duet:error"

_control_ids = itertools.count(1)


@dataclass(frozen=True, slots=True)
class SSEConnection:
    """A connected SSE client.

    Attributes:
        client_id: Unique identifier for this connection.
        session_id: The bridge session this client drives.
        queue: Delivery order of mailbox keys for the client's generator.
        pending: Mailbox of undelivered events, one slot per key.

    """

    client_id: str
    session_id: str
    queue: asyncio.Queue[str] = field(default_factory=asyncio.Queue, compare=False, hash=False)
    pending: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def offer(self, key: str, event: Any) -> bool:
        """Put *event* in the mailbox slot *key*.

        Returns:
            True if it replaced an undelivered event (superseded in place).

        """
        replaced = key in self.pending
        self.pending[key] = event
        if not replaced:
            self.queue.put_nowait(key)
        return replaced

    def take(self, key: str) -> Any | None:
        """Remove and return the event in slot *key* (None if discarded)."""
        return self.pending.pop(key, None)

    def discard_pending(self) -> int:
        """Drop every undelivered event and return how many were dropped."""
        count = len(self.pending)
        self.pending.clear()
        while not self.queue.empty():
            self.queue.get_nowait()
        return count


class Broadcaster:
    """Manages SSE connections and pushes per-session render updates.

    Each connected browser subscribes to exactly one session.  When a
    session publishes, the broadcaster:

    1. Encodes the RenderMessage as a wire envelope (once)
    2. Wraps it in a Chirp ``SSEEvent`` (``event: duet:render``)
    3. Offers it to every connection of that session, superseding any
       undelivered render for the same binding

    Thread-safe: subscriber map protected by a lock.

    """

    def __init__(self) -> None:
        self._subscribers: dict[str, set[SSEConnection]] = defaultdict(set)
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        """Total number of active SSE connections across all sessions."""
        with self._lock:
            return sum(len(conns) for conns in self._subscribers.values())

    def subscribe(self, session_id: str, conn: SSEConnection) -> None:
        """Register an SSE client for a session."""
        with self._lock:
            self._subscribers[session_id].add(conn)

    def unsubscribe(self, session_id: str, conn: SSEConnection) -> None:
        """Remove an SSE client."""
        with self._lock:
            self._subscribers[session_id].discard(conn)
            if not self._subscribers[session_id]:
                del self._subscribers[session_id]

    def get_subscribers(self, session_id: str) -> frozenset[SSEConnection]:
        """Get all subscribers for a session (snapshot, no lock held on return)."""
        with self._lock:
            return frozenset(self._subscribers.get(session_id, set()))

    def get_sessions(self) -> frozenset[str]:
        """Get all sessions that have at least one subscriber."""
        with self._lock:
            return frozenset(self._subscribers.keys())

    def push_render(self, session_id: str, message: RenderMessage) -> int:
        """Offer a render to every connection of *session_id*.

        Returns:
            Number of connections the render was offered to.

        """
        from chirp import SSEEvent

        subscribers = self.get_subscribers(session_id)
        if not subscribers:
            return 0

        event = SSEEvent(data=encode_envelope(message), event=RENDER_EVENT)
        key = f"render:{message.binding_name}"
        for conn in subscribers:
            conn.offer(key, event)
        return len(subscribers)

    def push_control(self, session_id: str, event_name: str, data: str) -> int:
        """Queue a non-coalescing control event (session handshake, error).

        Returns:
            Number of clients notified.

        """
        from chirp import SSEEvent

        subscribers = self.get_subscribers(session_id)
        event = SSEEvent(data=data, event=event_name)
        key = f"control:{next(_control_ids)}"
        for conn in subscribers:
            conn.offer(key, event)
        return len(subscribers)

    def discard_pending(self, session_id: str) -> int:
        """Drop undelivered events of every connection of *session_id*."""
        return sum(conn.discard_pending() for conn in self.get_subscribers(session_id))

    def transport_for(self, session_id: str) -> SessionTransport:
        """Return the render transport of one session."""
        return SessionTransport(self, session_id)

    async def client_generator(self, conn: SSEConnection) -> AsyncIterator[Any]:
        """Async generator that yields events from a connection's mailbox.

        Used as the generator for Chirp's ``EventStream``.  Keys whose slot
        was discarded (session closed) are skipped.

        Catches ``CancelledError`` (client disconnect / task cancellation)
        and ``GeneratorExit`` (generator cleanup) to prevent
        ``StopAsyncIteration`` noise from leaking into the event loop's
        exception handler.

        """
        try:
            while True:
                key = await conn.queue.get()
                event = conn.take(key)
                if event is None:
                    continue
                yield event
        except (asyncio.CancelledError, GeneratorExit):
            return


class SessionTransport:
    """``RenderTransport`` that delivers one session's renders over SSE.

    Args:
        broadcaster: The shared broadcaster.
        session_id: The session whose connections receive the renders.

    """

    __slots__ = ("_broadcaster", "_closed", "_session_id")

    def __init__(self, broadcaster: Broadcaster, session_id: str) -> None:
        self._broadcaster = broadcaster
        self._session_id = session_id
        self._closed = False

    @property
    def session_id(self) -> str:
        return self._session_id

    def send_render(self, message: RenderMessage) -> None:
        if self._closed:
            raise DeliveryError(f"transport for session {self._session_id!r} is closed")
        if self._broadcaster.push_render(self._session_id, message) == 0:
            raise DeliveryError(f"no client connected for session {self._session_id!r}")

    def send_error(self, payload: str) -> int:
        """Forward a JSON error payload to the session's clients."""
        if self._closed:
            return 0
        return self._broadcaster.push_control(self._session_id, ERROR_EVENT, payload)

    def close(self) -> int:
        """Stop delivering and drop undelivered events.  Returns the count dropped."""
        self._closed = True
        return self._broadcaster.discard_pending(self._session_id)
