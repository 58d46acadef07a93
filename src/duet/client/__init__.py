"""Client side of the bridge: the render host and the event channel."""

from duet.client.events import EventChannel
from duet.client.host import ClientRenderHost, RenderContext, Surface, SurfaceState

__all__ = [
    "ClientRenderHost",
    "EventChannel",
    "RenderContext",
    "Surface",
    "SurfaceState",
]
