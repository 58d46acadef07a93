"""Duet application — the bridge served by a Chirp app.

Endpoints (paths from DuetConfig):

    GET  stream_path   SSE stream; opens a session per connection and pushes
                       ``duet:session``, then ``duet:render`` / ``duet:error``
    POST event_path    form fields ``envelope`` (event envelope JSON) and
                       ``session`` (also accepted as a query parameter)
    GET  stats_path    event-log statistics as JSON

``serve(setup)`` is the primary entry point; ``create_app(setup)`` returns
the Chirp app for embedding or testing.
"""

from __future__ import annotations

import json
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from duet._errors import DuetError, SessionError
from duet.config import DuetConfig
from duet.config_loader import load_config
from duet.observability import BridgeCollector, EventLog
from duet.server.session import SessionManager
from duet.transport.broadcaster import SESSION_EVENT, Broadcaster, SSEConnection

if TYPE_CHECKING:
    from chirp import App
    from chirp.http.request import Request

    from duet.server.session import SetupFunc


@dataclass(frozen=True, slots=True)
class DuetServer:
    """A wired Chirp app plus the bridge state behind it."""

    app: App
    manager: SessionManager
    broadcaster: Broadcaster
    collector: BridgeCollector
    config: DuetConfig


def _json_response(data: dict[str, Any], status: int = 200) -> Any:
    from chirp.http.response import Response

    return Response(
        body=json.dumps(data, indent=2),
        status=status,
        content_type="application/json",
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def make_stream_handler(manager: SessionManager, broadcaster: Broadcaster) -> Any:
    """Build the SSE handler: one bridge session per connection.

    The connection is subscribed before the initial render so the first
    renders land in its mailbox instead of failing for lack of a client.

    """
    from chirp import EventStream

    async def stream_handler(request: Request) -> Any:
        session = manager.open()
        sid = session.session_id
        conn = SSEConnection(client_id=str(uuid.uuid4()), session_id=sid)
        broadcaster.subscribe(sid, conn)
        broadcaster.push_control(sid, SESSION_EVENT, json.dumps({"session": sid}))
        session.start()

        async def generate():  # type: ignore[return]
            try:
                async for event in broadcaster.client_generator(conn):
                    yield event
            finally:
                broadcaster.unsubscribe(sid, conn)
                manager.close(sid)

        return EventStream(generate())

    stream_handler.__name__ = "duet_stream"
    return stream_handler


def make_event_handler(manager: SessionManager) -> Any:
    """Build the POST handler that feeds event envelopes to their session."""

    async def event_handler(request: Request) -> Any:
        form = await request.form()
        sid = request.query.get("session") or form.get("session")
        envelope = form.get("envelope")
        if not sid or not envelope:
            return _json_response({"error": "missing 'session' or 'envelope'"}, status=400)
        try:
            applied = manager.dispatch_event(str(sid), str(envelope))
        except SessionError as exc:
            return _json_response({"error": str(exc)}, status=404)
        except DuetError as exc:
            return _json_response({"error": str(exc)}, status=400)
        return _json_response({"applied": applied}, status=202)

    event_handler.__name__ = "duet_event"
    return event_handler


def make_stats_handler(
    collector: BridgeCollector,
    manager: SessionManager,
    broadcaster: Broadcaster,
) -> Any:
    """Build the JSON stats handler."""

    async def stats_handler(request: Request) -> Any:
        return _json_response({
            "event_log": collector.log.stats(),
            "sessions": len(manager),
            "subscribers": broadcaster.subscriber_count,
        })

    stats_handler.__name__ = "duet_stats"
    return stats_handler


# ---------------------------------------------------------------------------
# App construction
# ---------------------------------------------------------------------------


def create_server(setup: SetupFunc, config: DuetConfig | None = None) -> DuetServer:
    """Create a Chirp app serving the bridge for *setup*.

    Args:
        setup: Called with every new ``BridgeSession`` to declare outputs.
        config: Server configuration (defaults to ``DuetConfig()``).

    """
    from chirp import App, AppConfig

    config = config or DuetConfig()
    app = App(config=AppConfig(debug=config.debug, host=config.host, port=config.port))

    collector = BridgeCollector(EventLog(max_events=config.max_events))
    broadcaster = Broadcaster()
    manager = SessionManager(setup, broadcaster=broadcaster, collector=collector, config=config)

    app.route(config.stream_path, name="duet:stream")(make_stream_handler(manager, broadcaster))
    app.route(config.event_path, methods=["POST"], name="duet:event")(make_event_handler(manager))
    app.route(config.stats_path, name="duet:stats")(
        make_stats_handler(collector, manager, broadcaster)
    )

    if config.inject_client:
        from duet.client_script import client_middleware

        app.add_middleware(client_middleware(config))

    @app.on_shutdown
    async def _close_sessions() -> None:
        closed = manager.close_all()
        if closed:
            print(f"  Dropped {closed} undelivered render(s) on shutdown", file=sys.stderr)

    return DuetServer(
        app=app,
        manager=manager,
        broadcaster=broadcaster,
        collector=collector,
        config=config,
    )


def create_app(setup: SetupFunc, config: DuetConfig | None = None) -> App:
    """Create the Chirp app for *setup* (see ``create_server``)."""
    return create_server(setup, config).app


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def serve(setup: SetupFunc, root: str | Path = ".", **kwargs: object) -> None:
    """Run the bridge server.

    Args:
        setup: Called with every new ``BridgeSession`` to declare outputs.
        root: Directory holding ``duet.yaml`` / ``duet.toml``.
        **kwargs: Override DuetConfig fields.

    """
    from duet.banner import print_banner

    config = load_config(Path(root), **kwargs)
    server = create_server(setup, config)

    name = getattr(setup, "__qualname__", repr(setup))
    module = getattr(setup, "__module__", None)
    print_banner(config, setup_name=f"{module}:{name}" if module else name)

    server.app.run(host=config.host, port=config.port)
