"""Dependency graph — a small reference reactive engine for the bridge.

Maps input names to the outputs computed from them: "input X changed,
which outputs need recomputing?"  Each recomputation gets a fresh sequence
number which becomes the render's freshness token.

Any engine exposing ``notify_input_changed(name)`` can replace this one; the
bridge only depends on that protocol.

Example::

    graph = DependencyGraph(bridge, inputs)
    graph.output("chart", lambda inputs: [0.3, 0.6, 0.8])
    graph.output(
        "detail",
        lambda inputs: {"bar": inputs.require("bar_clicked")},
        depends_on=("bar_clicked",),
    )
    graph.recompute_all()

Abstention:
    A compute function that calls ``inputs.require(name)`` on an unset input
    raises ``UnsetSlotAccess``; the graph swallows exactly that error and
    produces no render.  Guarding with ``inputs.is_set(name)`` is the
    explicit alternative.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from duet._errors import DuetError, UnsetSlotAccess

if TYPE_CHECKING:
    from duet.observability.sink import ErrorSink
    from duet.server.bridge import ReactiveBridge
    from duet.server.registry import InputRegistry

type ComputeFunc = Callable[[InputRegistry], Any]


@dataclass(frozen=True, slots=True)
class OutputNode:
    """A computed output and the inputs it reads.

    Attributes:
        name: Binding name the value is published to.
        compute: Called with the session's InputRegistry.
        depends_on: Input names whose change triggers recomputation.

    """

    name: str
    compute: ComputeFunc
    depends_on: frozenset[str]


class DependencyGraph:
    """Input → output dependency graph for one session.

    Args:
        bridge: Receives ``on_recompute`` for every produced value.
        inputs: Handed to compute functions for reads.
        sink: Error sink for compute functions that raise.

    """

    def __init__(
        self,
        bridge: ReactiveBridge,
        inputs: InputRegistry,
        *,
        sink: ErrorSink | None = None,
    ) -> None:
        self._bridge = bridge
        self._inputs = inputs
        self._sink = sink
        self._outputs: dict[str, OutputNode] = {}
        self._dependents: dict[str, list[str]] = {}
        self._sequence = 0
        self._lock = threading.Lock()

    def output(
        self,
        name: str,
        compute: ComputeFunc,
        *,
        depends_on: Iterable[str] = (),
    ) -> OutputNode:
        """Declare how output *name* is computed and what it reads."""
        node = OutputNode(name=name, compute=compute, depends_on=frozenset(depends_on))
        previous = self._outputs.get(name)
        if previous is not None:
            for dep in previous.depends_on:
                self._dependents[dep].remove(name)
        self._outputs[name] = node
        for dep in sorted(node.depends_on):
            self._dependents.setdefault(dep, []).append(name)
        return node

    def remove(self, name: str) -> None:
        """Forget output *name*."""
        node = self._outputs.pop(name, None)
        if node is None:
            return
        for dep in node.depends_on:
            self._dependents[dep].remove(name)

    def dependents_of(self, input_name: str) -> tuple[str, ...]:
        """Outputs recomputed when *input_name* changes, in declaration order."""
        return tuple(self._dependents.get(input_name, ()))

    @property
    def outputs(self) -> tuple[str, ...]:
        return tuple(self._outputs)

    # ----- ReactiveFramework protocol -----

    def notify_input_changed(self, name: str) -> int:
        """Recompute every output depending on *name*.

        Returns:
            Number of outputs that produced a render.

        """
        return sum(1 for output in self.dependents_of(name) if self.recompute(output))

    # ----- Recomputation -----

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def recompute(self, name: str) -> bool:
        """Run output *name* once and publish its value.

        Returns:
            True if a render was pushed; False if the computation abstained,
            failed, or its render was superseded.

        """
        node = self._outputs.get(name)
        if node is None:
            return False

        token = self.next_sequence()
        try:
            value = node.compute(self._inputs)
        except UnsetSlotAccess:
            return False
        except Exception as exc:
            if self._sink is None:
                raise
            self._sink.report(exc, where="compute", name=name)
            return False

        try:
            message = self._bridge.on_recompute(name, value, token)
        except DuetError:
            if self._sink is None:
                raise
            # Already reported by the render channel; the graph moves on.
            return False
        return message is not None

    def recompute_all(self) -> int:
        """Initial render: compute every output once, in declaration order."""
        return sum(1 for name in tuple(self._outputs) if self.recompute(name))
