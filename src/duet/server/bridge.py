"""Reactive bridge — the session-scoped facade the reactive framework talks to.

Inbound from the framework::

    register_output(name, renderer_ref, options) -> Binding
    register_input(name)                         -> ReactiveInputSlot
    on_recompute(binding_name, value, token)     -> pushes a render

Outbound to the framework::

    framework.notify_input_changed(name)         after an applied input event

The bridge owns no global state: every collaborator is handed in by the
session that creates it.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from duet._errors import DuetError
from duet.server.registry import UNSET

if TYPE_CHECKING:
    from duet.observability.sink import ErrorSink
    from duet.server.bindings import Binding, BindingRegistry
    from duet.server.registry import InputRegistry, ReactiveInputSlot
    from duet.server.render_channel import RenderChannel
    from duet.wire.envelope import InputEvent, RenderMessage


class ReactiveFramework(Protocol):
    """The invalidation engine the bridge feeds."""

    def notify_input_changed(self, name: str) -> object:
        """Invalidate everything that depends on input *name*."""
        ...


class ReactiveBridge:
    """Connects one session's reactive graph to its client surfaces.

    Args:
        bindings: The session's binding registry.
        inputs: The session's input registry.
        channel: The session's render channel.
        sink: Error sink for events that fail to apply.

    """

    def __init__(
        self,
        bindings: BindingRegistry,
        inputs: InputRegistry,
        channel: RenderChannel,
        *,
        sink: ErrorSink | None = None,
    ) -> None:
        self._bindings = bindings
        self._inputs = inputs
        self._channel = channel
        self._sink = sink
        self._framework: ReactiveFramework | None = None

    def attach(self, framework: ReactiveFramework | None) -> None:
        """Route input-change notifications to *framework*."""
        self._framework = framework
        self._inputs.bind_notify(self._notify if framework is not None else None)

    @property
    def framework(self) -> ReactiveFramework | None:
        return self._framework

    def _notify(self, name: str) -> None:
        if self._framework is not None:
            self._framework.notify_input_changed(name)

    # ----- Framework → bridge -----

    def register_output(
        self,
        name: str,
        renderer_ref: str,
        options: Mapping[str, Any] | None = None,
    ) -> Binding:
        """Declare an output placeholder bound to a client surface.

        Raises:
            DuplicateBindingError: *name* is already bound in this session.

        """
        return self._bindings.register(name, renderer_ref, options)

    def unregister_output(self, name: str) -> Binding | None:
        """Destroy a binding (its surface was removed from the page)."""
        return self._bindings.unregister(name)

    def register_input(self, name: str) -> ReactiveInputSlot:
        """Declare a named input and return its slot handle."""
        return self._inputs.register(name)

    def on_recompute(
        self,
        binding_name: str,
        value: Any,
        token: int | None = None,
    ) -> RenderMessage | None:
        """Push a freshly computed value for *binding_name* to the client.

        Raises whatever the render channel raises (already reported to the
        sink); the framework owns retry.

        """
        return self._channel.publish(binding_name, value, token=token)

    # ----- Client → bridge -----

    def receive(self, event: InputEvent) -> bool:
        """Apply one client input event.

        Returns True if it changed the slot (and the graph was notified).
        Undecodable values are reported to the sink and leave state unchanged.

        """
        try:
            return self._inputs.apply(event)
        except DuetError as exc:
            if self._sink is None:
                raise
            self._sink.report(exc, where="event", name=event.input_name)
            return False

    # ----- Reads for dependent computations -----

    def get(self, name: str) -> Any:
        """Current value of input *name*, or ``UNSET``."""
        return self._inputs.get(name, UNSET)

    def is_set(self, name: str) -> bool:
        return self._inputs.is_set(name)

    def require(self, name: str) -> Any:
        """Value of *name*; raises ``UnsetSlotAccess`` so the caller abstains."""
        return self._inputs.require(name)
