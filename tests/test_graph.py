"""Tests for duet.server.graph — the reference reactive engine."""

from __future__ import annotations

import pytest

from duet._errors import DeliveryError
from duet._types import DeliveryMode
from duet.server.bindings import BindingRegistry
from duet.server.bridge import ReactiveBridge
from duet.server.graph import DependencyGraph
from duet.server.registry import InputRegistry
from duet.server.render_channel import RenderChannel
from duet.wire import codec
from duet.wire.envelope import InputEvent


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _graph(transport, sink=None) -> tuple[DependencyGraph, ReactiveBridge]:
    bindings = BindingRegistry("s1")
    inputs = InputRegistry("s1")
    channel = RenderChannel(bindings, transport, session_id="s1", sink=sink)
    bridge = ReactiveBridge(bindings, inputs, channel, sink=sink)
    graph = DependencyGraph(bridge, inputs, sink=sink)
    bridge.attach(graph)
    return graph, bridge


def _click(bridge: ReactiveBridge, value: object) -> bool:
    return bridge.receive(InputEvent("bar_clicked", codec.encode(value), DeliveryMode.EVENT))


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestDeclaration:
    """output() / remove() / dependents_of()."""

    def test_dependents_in_declaration_order(self, transport) -> None:
        graph, _ = _graph(transport)
        graph.output("b", lambda i: 1, depends_on=("x",))
        graph.output("a", lambda i: 1, depends_on=("x", "y"))
        assert graph.dependents_of("x") == ("b", "a")
        assert graph.dependents_of("y") == ("a",)
        assert graph.outputs == ("b", "a")

    def test_redeclare_replaces_dependencies(self, transport) -> None:
        graph, _ = _graph(transport)
        graph.output("a", lambda i: 1, depends_on=("x",))
        graph.output("a", lambda i: 2, depends_on=("y",))
        assert graph.dependents_of("x") == ()
        assert graph.dependents_of("y") == ("a",)

    def test_remove(self, transport) -> None:
        graph, _ = _graph(transport)
        graph.output("a", lambda i: 1, depends_on=("x",))
        graph.remove("a")
        graph.remove("a")
        assert graph.dependents_of("x") == ()
        assert graph.recompute("a") is False


class TestRecompute:
    """recompute() / recompute_all() / notify_input_changed()."""

    def test_initial_render(self, transport) -> None:
        graph, bridge = _graph(transport)
        bridge.register_output("chart", "bars")
        graph.output("chart", lambda inputs: [0.3, 0.6, 0.8])

        assert graph.recompute_all() == 1
        assert codec.decode(transport.renders[0].payload) == [0.3, 0.6, 0.8]

    def test_sequence_numbers_become_tokens(self, transport) -> None:
        graph, bridge = _graph(transport)
        bridge.register_output("chart", "bars")
        graph.output("chart", lambda inputs: 1)
        graph.recompute("chart")
        graph.recompute("chart")
        assert [m.token for m in transport.renders] == [1, 2]

    def test_unset_input_abstains(self, transport, sink) -> None:
        graph, bridge = _graph(transport, sink)
        bridge.register_output("detail", "text")
        graph.output(
            "detail",
            lambda inputs: {"bar": inputs.require("bar_clicked")},
            depends_on=("bar_clicked",),
        )

        assert graph.recompute_all() == 0
        assert transport.renders == []
        assert sink.reports == []

    def test_input_change_recomputes_dependents(self, transport) -> None:
        graph, bridge = _graph(transport)
        bridge.register_output("detail", "text")
        graph.output(
            "detail",
            lambda inputs: {"bar": inputs.require("bar_clicked")},
            depends_on=("bar_clicked",),
        )

        _click(bridge, "0.6")
        _click(bridge, "0.6")

        assert [codec.decode(m.payload) for m in transport.renders] == [
            {"bar": "0.6"},
            {"bar": "0.6"},
        ]

    def test_unrelated_input_ignored(self, transport) -> None:
        graph, bridge = _graph(transport)
        bridge.register_output("chart", "bars")
        graph.output("chart", lambda inputs: 1, depends_on=("zoom",))
        assert graph.notify_input_changed("other") == 0


class TestErrors:
    """Compute and publish failures."""

    def test_compute_error_reported(self, transport, sink) -> None:
        graph, bridge = _graph(transport, sink)
        bridge.register_output("chart", "bars")
        graph.output("chart", lambda inputs: 1 / 0)

        assert graph.recompute("chart") is False
        error, where, name = sink.reports[0]
        assert isinstance(error, ZeroDivisionError)
        assert (where, name) == ("compute", "chart")

    def test_compute_error_raises_without_sink(self, transport) -> None:
        graph, bridge = _graph(transport)
        bridge.register_output("chart", "bars")
        graph.output("chart", lambda inputs: 1 / 0)
        with pytest.raises(ZeroDivisionError):
            graph.recompute("chart")

    def test_publish_error_counts_as_failure(self, transport, sink) -> None:
        transport.fail_with = DeliveryError("offline")
        graph, bridge = _graph(transport, sink)
        bridge.register_output("chart", "bars")
        graph.output("chart", lambda inputs: 1)

        assert graph.recompute_all() == 0
        assert len(sink.of_type(DeliveryError)) == 1

    def test_publish_error_raises_without_sink(self, transport) -> None:
        transport.fail_with = DeliveryError("offline")
        graph, bridge = _graph(transport)
        bridge.register_output("chart", "bars")
        graph.output("chart", lambda inputs: 1)
        with pytest.raises(DeliveryError):
            graph.recompute("chart")

    def test_one_failing_output_does_not_stop_others(self, transport, sink) -> None:
        graph, bridge = _graph(transport, sink)
        bridge.register_output("bad", "bars")
        bridge.register_output("good", "bars")
        graph.output("bad", lambda inputs: {1})
        graph.output("good", lambda inputs: 2)

        assert graph.recompute_all() == 1
        assert [m.binding_name for m in transport.renders] == ["good"]
