"""Duet — a bidirectional bridge between a server reactive graph and client scripts.

Server outputs render in the browser through plain rendering scripts; those
scripts feed values back into the server's reactive inputs.

Quick start::

    import duet

    def setup(session):
        session.output("chart", lambda inputs: [0.3, 0.6, 0.8], renderer="bars")
        session.output(
            "detail",
            lambda inputs: {"bar": inputs.require("bar_clicked")},
            depends_on=("bar_clicked",),
        )

    duet.serve(setup)

Two directions::

    server ── RenderChannel ──▶ SSE ──▶ ClientRenderHost ──▶ renderer(payload, ctx)
    server ◀── InputRegistry ◀── POST ◀── EventChannel ◀── ctx.set_input(name, value)

Layers:

    duet.wire           Payload codec and envelopes
    duet.server         Bindings, input slots, render channel, sessions
    duet.client         Render host and event channel
    duet.transport      SSE broadcaster and in-process loopback
    duet.observability  Event log, collector, error sink

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0-dev"
__all__ = [
    "BridgeSession",
    "ClientRenderHost",
    "DeliveryMode",
    "DuetConfig",
    "EventChannel",
    "LoopbackTransport",
    "UNSET",
    "__version__",
    "create_app",
    "serve",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import duet`` fast (chirp is only imported by the server parts).
    """
    if name == "DuetConfig":
        from duet.config import DuetConfig

        return DuetConfig

    if name == "DeliveryMode":
        from duet._types import DeliveryMode

        return DeliveryMode

    if name == "UNSET":
        from duet.server.registry import UNSET

        return UNSET

    if name == "BridgeSession":
        from duet.server.session import BridgeSession

        return BridgeSession

    if name == "ClientRenderHost":
        from duet.client.host import ClientRenderHost

        return ClientRenderHost

    if name == "EventChannel":
        from duet.client.events import EventChannel

        return EventChannel

    if name == "LoopbackTransport":
        from duet.transport.loopback import LoopbackTransport

        return LoopbackTransport

    if name == "create_app":
        from duet.app import create_app

        return create_app

    if name == "serve":
        from duet.app import serve

        return serve

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
