"""Transport protocols — the seams between the bridge and the wire.

The render channel only needs something that can ``send_render``; the event
channel only needs something that can ``send_event``.  Both must fail fast
with ``DeliveryError`` rather than block or retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from duet.wire.envelope import InputEvent, RenderMessage


class RenderTransport(Protocol):
    """Server-to-client delivery of render messages for one session."""

    def send_render(self, message: RenderMessage) -> None:
        """Hand *message* off for delivery.

        Raises:
            DeliveryError: If the transport is unavailable.

        """
        ...


class EventTransport(Protocol):
    """Client-to-server delivery of input events."""

    def send_event(self, event: InputEvent) -> None:
        """Hand *event* off for delivery without awaiting acknowledgement.

        Raises:
            DeliveryError: If the transport is unavailable.

        """
        ...
