"""In-process loopback transport — server and client in one interpreter.

Carries both directions through the real envelope codec, so anything that
works over the loopback also survives the trip through the SSE stream and
the event endpoint:

    RenderChannel ──send_render──▶ encode/decode ──▶ ClientRenderHost.on_message
    EventChannel  ──send_event───▶ encode        ──▶ BridgeSession.dispatch

With ``deferred=True`` renders wait in an outbox until ``flush()``, which
lets tests deliver them late or out of order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from duet._errors import DeliveryError
from duet.wire.envelope import decode_envelope, encode_envelope

if TYPE_CHECKING:
    from duet.wire.envelope import InputEvent, RenderMessage


class _Host(Protocol):
    def on_message(self, msg: RenderMessage) -> Any: ...


class _Dispatcher(Protocol):
    def dispatch(self, text: str | bytes) -> Any: ...


class LoopbackTransport:
    """Render and event transport connecting a host and a session in-process.

    Args:
        host: Receives render messages (usually a ClientRenderHost).
        session: Receives event envelopes (usually a BridgeSession).
        deferred: Hold renders until ``flush()``.

    """

    def __init__(
        self,
        host: _Host | None = None,
        session: _Dispatcher | None = None,
        *,
        deferred: bool = False,
    ) -> None:
        self._host = host
        self._session = session
        self._deferred = deferred
        self._outbox: list[str] = []
        self._closed = False
        self.renders_sent = 0
        self.events_sent = 0

    def connect_host(self, host: _Host) -> None:
        self._host = host

    def connect_session(self, session: _Dispatcher) -> None:
        self._session = session

    @property
    def pending(self) -> int:
        """Renders waiting in the outbox."""
        return len(self._outbox)

    # ----- RenderTransport -----

    def send_render(self, message: RenderMessage) -> None:
        if self._closed:
            raise DeliveryError("loopback transport is closed")
        if self._host is None:
            raise DeliveryError("no render host connected")
        text = encode_envelope(message)
        self.renders_sent += 1
        if self._deferred:
            self._outbox.append(text)
            return
        self._host.on_message(decode_envelope(text))

    def flush(self, *, reverse: bool = False) -> int:
        """Deliver held renders, oldest first (newest first with *reverse*).

        Returns:
            Number of renders delivered.

        """
        if self._host is None:
            raise DeliveryError("no render host connected")
        batch, self._outbox = self._outbox, []
        if reverse:
            batch.reverse()
        for text in batch:
            self._host.on_message(decode_envelope(text))
        return len(batch)

    # ----- EventTransport -----

    def send_event(self, event: InputEvent) -> None:
        if self._closed:
            raise DeliveryError("loopback transport is closed")
        if self._session is None:
            raise DeliveryError("no session connected")
        self.events_sent += 1
        self._session.dispatch(encode_envelope(event))

    def close(self) -> int:
        """Stop carrying messages.  Returns the number of renders dropped."""
        self._closed = True
        dropped = len(self._outbox)
        self._outbox.clear()
        return dropped
