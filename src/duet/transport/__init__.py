"""Transports — SSE broadcasting for browsers, loopback for in-process use."""

from duet.transport.broadcaster import Broadcaster, SessionTransport, SSEConnection
from duet.transport.loopback import LoopbackTransport
from duet.transport.protocol import EventTransport, RenderTransport

__all__ = [
    "Broadcaster",
    "EventTransport",
    "LoopbackTransport",
    "RenderTransport",
    "SSEConnection",
    "SessionTransport",
]
