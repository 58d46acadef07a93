"""Event channel — how rendering scripts feed values back to the server.

``emit()`` is fire-and-forget: it encodes the value, wraps it in an
``InputEvent`` and hands it to the transport without waiting for the server.
A rendering script must never be taken down by its own ``set_input`` call,
so every failure is reported to the error sink and turned into ``False``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from duet._errors import DuetError
from duet._types import DeliveryMode
from duet.wire import codec
from duet.wire.envelope import InputEvent

if TYPE_CHECKING:
    from duet.observability.sink import ErrorSink
    from duet.transport.protocol import EventTransport


class EventChannel:
    """Client-to-server input emitter.

    Args:
        transport: Carries the events to the server.
        sink: Error sink for encode and delivery failures.

    """

    __slots__ = ("_sink", "_transport")

    def __init__(self, transport: EventTransport, sink: ErrorSink | None = None) -> None:
        self._transport = transport
        self._sink = sink

    def emit(
        self,
        input_name: str,
        value: Any,
        mode: DeliveryMode | str = DeliveryMode.VALUE,
    ) -> bool:
        """Send *value* for *input_name*.

        Returns:
            True if the transport accepted the event.

        """
        try:
            delivery = DeliveryMode(mode)
        except ValueError:
            self._report(DuetError(f"unknown delivery mode: {mode!r}"), input_name)
            return False

        try:
            event = InputEvent(input_name=input_name, value=codec.encode(value), mode=delivery)
            self._transport.send_event(event)
        except DuetError as exc:
            self._report(exc, input_name)
            return False
        return True

    def _report(self, error: DuetError, name: str) -> None:
        if self._sink is not None:
            self._sink.report(error, where="event", name=name)
