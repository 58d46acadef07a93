"""Shared test fixtures for duet."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import pytest

from duet.client.events import EventChannel
from duet.client.host import ClientRenderHost, RenderContext
from duet.observability import BridgeCollector, EventLog
from duet.server.session import BridgeSession
from duet.transport.loopback import LoopbackTransport


# ---------------------------------------------------------------------------
# Recording doubles
# ---------------------------------------------------------------------------


@dataclass
class RecordingSink:
    """ErrorSink that keeps every report for assertions."""

    reports: list[tuple[BaseException, str, str]] = field(default_factory=list)

    def report(self, error: BaseException, *, where: str, name: str = "") -> None:
        self.reports.append((error, where, name))

    @property
    def errors(self) -> list[BaseException]:
        return [error for error, _, _ in self.reports]

    def of_type(self, kind: type) -> list[BaseException]:
        return [error for error in self.errors if isinstance(error, kind)]


@dataclass
class RecordingFramework:
    """ReactiveFramework that only remembers which inputs changed."""

    changed: list[str] = field(default_factory=list)

    def notify_input_changed(self, name: str) -> None:
        self.changed.append(name)


@dataclass
class RendererSpy:
    """Rendering script that records every invocation."""

    calls: list[tuple[Any, RenderContext]] = field(default_factory=list)
    raises: BaseException | None = None

    def __call__(self, payload: Any, context: RenderContext) -> None:
        self.calls.append((payload, context))
        if self.raises is not None:
            raise self.raises

    @property
    def payloads(self) -> list[Any]:
        return [payload for payload, _ in self.calls]

    @property
    def last_context(self) -> RenderContext:
        return self.calls[-1][1]


@dataclass
class RecordingTransport:
    """RenderTransport / EventTransport that collects messages."""

    renders: list[Any] = field(default_factory=list)
    events: list[Any] = field(default_factory=list)
    fail_with: BaseException | None = None

    def send_render(self, message: Any) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.renders.append(message)

    def send_event(self, event: Any) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append(event)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def framework() -> RecordingFramework:
    return RecordingFramework()


@pytest.fixture
def spy() -> RendererSpy:
    return RendererSpy()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def collector() -> BridgeCollector:
    return BridgeCollector(EventLog())


@pytest.fixture
def digit_limit() -> Iterator[int]:
    """Pin the interpreter's int/str conversion limit to its default."""
    previous = sys.get_int_max_str_digits()
    sys.set_int_max_str_digits(4300)
    yield 4300
    sys.set_int_max_str_digits(previous)


@dataclass
class Loop:
    """A server session and a client host joined by a loopback transport."""

    session: BridgeSession
    host: ClientRenderHost
    events: EventChannel
    transport: LoopbackTransport


def make_loop(
    sink: RecordingSink,
    collector: BridgeCollector | None = None,
    *,
    deferred: bool = False,
    session_id: str = "s1",
) -> Loop:
    """Wire a BridgeSession to a ClientRenderHost in-process."""
    transport = LoopbackTransport(deferred=deferred)
    events = EventChannel(transport, sink)
    host = ClientRenderHost(events, sink=sink, collector=collector)
    session = BridgeSession(session_id, transport, sink=sink, collector=collector)
    transport.connect_host(host)
    transport.connect_session(session)
    return Loop(session=session, host=host, events=events, transport=transport)


@pytest.fixture
def loop(sink: RecordingSink, collector: BridgeCollector) -> Loop:
    return make_loop(sink, collector)


@pytest.fixture
def deferred_loop(sink: RecordingSink, collector: BridgeCollector) -> Loop:
    """Like ``loop`` but renders wait for ``transport.flush()``."""
    return make_loop(sink, collector, deferred=True)
