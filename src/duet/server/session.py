"""Bridge sessions — one per connected client, sharing no state.

A ``BridgeSession`` wires one client's components together::

    InputRegistry ──notify──▶ DependencyGraph ──on_recompute──▶ ReactiveBridge
          ▲                                                          │
          │ receive / dispatch                                       ▼
    event envelopes                                    RenderChannel ──▶ transport

The ``SessionManager`` owns the live sessions of a server: it opens them
(running the application's ``setup(session)``), routes event envelopes to
them by id, and closes them when their client goes away.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from duet._errors import DuetError, ProtocolError, SessionError
from duet.observability.sink import CollectorErrorSink
from duet.server.bindings import BindingRegistry
from duet.server.bridge import ReactiveBridge
from duet.server.graph import DependencyGraph
from duet.server.registry import InputRegistry
from duet.server.render_channel import DEFAULT_HEIGHT, DEFAULT_WIDTH, RenderChannel
from duet.wire.envelope import InputEvent, decode_envelope

if TYPE_CHECKING:
    from duet.config import DuetConfig
    from duet.observability.collector import BridgeCollector
    from duet.observability.sink import ErrorSink
    from duet.server.bindings import Binding
    from duet.server.graph import ComputeFunc, OutputNode
    from duet.server.registry import ReactiveInputSlot
    from duet.transport.broadcaster import Broadcaster
    from duet.transport.protocol import RenderTransport

type SetupFunc = Callable[[BridgeSession], Any]


class BridgeSession:
    """All bridge state for one client.

    Args:
        session_id: Unique id of the client session.
        transport: Render transport reaching this client only.
        sink: Error sink shared by the session's components.
        collector: Optional collector for observability events.
        default_width: Width for bindings that set none.
        default_height: Height for bindings that set none.

    """

    def __init__(
        self,
        session_id: str,
        transport: RenderTransport,
        *,
        sink: ErrorSink | None = None,
        collector: BridgeCollector | None = None,
        default_width: int = DEFAULT_WIDTH,
        default_height: int = DEFAULT_HEIGHT,
    ) -> None:
        self._session_id = session_id
        self._transport = transport
        self._sink = sink
        self._collector = collector
        self._closed = False

        self.inputs = InputRegistry(session_id, collector=collector)
        self.bindings = BindingRegistry(session_id)
        self.channel = RenderChannel(
            self.bindings,
            transport,
            session_id=session_id,
            sink=sink,
            collector=collector,
            default_width=default_width,
            default_height=default_height,
        )
        self.bridge = ReactiveBridge(self.bindings, self.inputs, self.channel, sink=sink)
        self.graph = DependencyGraph(self.bridge, self.inputs, sink=sink)
        self.bridge.attach(self.graph)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def closed(self) -> bool:
        return self._closed

    # ----- Declaration -----

    def output(
        self,
        name: str,
        compute: ComputeFunc,
        *,
        renderer: str | None = None,
        depends_on: Iterable[str] = (),
        options: Mapping[str, Any] | None = None,
    ) -> OutputNode:
        """Bind output *name* to a client surface and declare how it is computed.

        Args:
            name: Binding name (the client surface key).
            compute: ``compute(inputs)`` returning a codec-encodable value.
            renderer: Renderer reference; defaults to *name*.
            depends_on: Input names that trigger recomputation.
            options: Binding options (``width``, ``height``, anything else
                the script reads).

        """
        self.bridge.register_output(name, renderer or name, options)
        for input_name in depends_on:
            self.bridge.register_input(input_name)
        return self.graph.output(name, compute, depends_on=depends_on)

    def register_output(
        self,
        name: str,
        renderer_ref: str,
        options: Mapping[str, Any] | None = None,
    ) -> Binding:
        return self.bridge.register_output(name, renderer_ref, options)

    def register_input(self, name: str) -> ReactiveInputSlot:
        return self.bridge.register_input(name)

    # ----- Lifecycle -----

    def start(self) -> int:
        """Initial render of every declared output.

        Returns:
            Number of outputs that produced a render.

        """
        if self._closed:
            raise SessionError(f"session {self._session_id!r} is closed")
        return self.graph.recompute_all()

    def receive(self, event: InputEvent) -> bool:
        """Apply one decoded input event.  Dropped once the session is closed."""
        if self._closed:
            return False
        return self.bridge.receive(event)

    def dispatch(self, text: str | bytes) -> bool:
        """Decode an event envelope and apply it.

        Malformed envelopes (and render envelopes, which never travel this
        way) are reported to the sink and leave state unchanged.

        """
        if self._closed:
            return False
        try:
            message = decode_envelope(text)
            if not isinstance(message, InputEvent):
                raise ProtocolError("expected an event envelope, got a render envelope")
        except DuetError as exc:
            if self._sink is None:
                raise
            self._sink.report(exc, where="event")
            return False
        return self.receive(message)

    def close(self) -> int:
        """End the session: drop pending renders and refuse further traffic.

        Returns:
            Number of undelivered renders discarded.

        """
        if self._closed:
            return 0
        self._closed = True
        self.channel.close()
        self.bridge.attach(None)

        discarded = 0
        close = getattr(self._transport, "close", None)
        if callable(close):
            discarded = close() or 0

        if self._collector is not None:
            self._collector.record_session_closed(self._session_id, discarded=discarded)
        return discarded


class SessionManager:
    """Live sessions of one server, keyed by id.

    Thread-safe: the session map is protected by a lock.

    Args:
        setup: Called with every new session to declare its outputs.
        broadcaster: Delivers the sessions' renders over SSE.
        collector: Optional collector shared by all sessions.
        config: Server configuration (sizing defaults, debug).

    """

    def __init__(
        self,
        setup: SetupFunc,
        *,
        broadcaster: Broadcaster,
        collector: BridgeCollector | None = None,
        config: DuetConfig | None = None,
    ) -> None:
        self._setup = setup
        self._broadcaster = broadcaster
        self._collector = collector
        self._config = config
        self._sessions: dict[str, BridgeSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    @property
    def session_ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._sessions)

    def open(self, session_id: str | None = None) -> BridgeSession:
        """Create a session and run the application's setup on it.

        The initial render is left to the caller (``session.start()``), which
        runs once the client's connection is subscribed.

        Raises:
            SessionError: *session_id* is already live.

        """
        sid = session_id or uuid.uuid4().hex
        transport = self._broadcaster.transport_for(sid)
        sink = CollectorErrorSink(
            self._collector, forward=transport.send_error, session_id=sid,
        )
        width = self._config.default_width if self._config is not None else DEFAULT_WIDTH
        height = self._config.default_height if self._config is not None else DEFAULT_HEIGHT
        session = BridgeSession(
            sid,
            transport,
            sink=sink,
            collector=self._collector,
            default_width=width,
            default_height=height,
        )

        with self._lock:
            if sid in self._sessions:
                raise SessionError(f"session {sid!r} already exists")
            self._sessions[sid] = session

        try:
            self._setup(session)
        except Exception:
            with self._lock:
                self._sessions.pop(sid, None)
            raise

        if self._collector is not None:
            self._collector.record_session_opened(sid)
        return session

    def get(self, session_id: str) -> BridgeSession:
        """Look up a live session.

        Raises:
            SessionError: No live session has that id.

        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionError(f"unknown session {session_id!r}")
        return session

    def dispatch_event(self, session_id: str, text: str | bytes) -> bool:
        """Route an event envelope to its session."""
        return self.get(session_id).dispatch(text)

    def close(self, session_id: str) -> int:
        """Close and forget a session.  Unknown ids are ignored."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return 0
        return session.close()

    def close_all(self) -> int:
        """Close every live session (server shutdown)."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        return sum(session.close() for session in sessions)
