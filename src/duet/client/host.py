"""Client render host — applies render messages to mounted surfaces.

The host owns the physical side of every binding: a *surface* is the
container a rendering script draws into, keyed by the binding name.

Surface lifecycle::

    UNMOUNTED ──mount──▶ MOUNTED ──first successful render──▶ RENDERED
        ▲                   │                                    │ (re-entered
        └─────unmount───────┴────────────────unmount─────────────┘  on updates)

Message handling:
    - Tokens lower than the last applied token for the binding are
      discarded (a superseded render never overwrites a newer one).
    - With no surface mounted, the most recent message waits in a one-slot
      buffer and is applied on ``mount``; ``teardown`` drops it.
    - Updates to one surface never overlap: a message arriving while that
      surface's script is running (e.g. a ``set_input`` that loops straight
      back into a render) is parked and applied when the script returns.
    - A script that raises is reported as ``ScriptInvocationError`` to the
      error sink; the surface keeps its last good render and the other
      surfaces carry on.

Rendering scripts are plain callables ``renderer(payload, context)``
registered under the ``renderer_ref`` the server uses.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from duet._errors import DuetError, ScriptInvocationError
from duet._types import DeliveryMode
from duet.wire import codec

if TYPE_CHECKING:
    from duet._types import RendererFunc
    from duet.client.events import EventChannel
    from duet.observability.collector import BridgeCollector
    from duet.observability.sink import ErrorSink
    from duet.wire.envelope import RenderMessage

type ResizeCallback = Callable[[int, int], Any]


class SurfaceState(Enum):
    """Lifecycle state of one client surface."""

    UNMOUNTED = "unmounted"
    MOUNTED = "mounted"
    RENDERED = "rendered"


@dataclass(frozen=True, slots=True)
class RenderContext:
    """The stable execution context handed to a rendering script.

    Attributes:
        width: Current surface width.
        height: Current surface height.
        container: The bound container handle (opaque to the host).
        initialized: False on the first render of the surface, True after.
        options: Binding options from the server.
        set_input: ``set_input(name, value, mode=VALUE)`` — the sole way
            back into the server's reactive graph.
        on_resize: ``on_resize(callback)`` — register a resize handler for
            this surface instead of being fully re-rendered on resize.

    """

    width: int
    height: int
    container: Any
    initialized: bool
    options: Mapping[str, Any] = field(default_factory=dict)
    set_input: Callable[..., bool] = field(default=lambda *a, **k: False, repr=False)
    on_resize: Callable[[ResizeCallback], None] = field(
        default=lambda callback: None, repr=False
    )


@dataclass(slots=True)
class Surface:
    """Host-side state of one mounted binding.

    Attributes:
        name: Binding name.
        container: Container handle passed to the script.
        width: Surface width (None = use the server's sizing hint).
        height: Surface height (None = use the server's sizing hint).
        state: Lifecycle state.
        token: Token of the last applied message.
        last_message: Last successfully applied message (for re-render on resize).
        resize_handler: Callback registered by the script via ``on_resize``.
        busy: True while a script invocation for this surface is running.
        parked: Message waiting for the running invocation to finish.
        rerender: A resize arrived while busy; re-run the last message after.

    """

    name: str
    container: Any
    width: int | None = None
    height: int | None = None
    state: SurfaceState = SurfaceState.MOUNTED
    token: int = 0
    last_message: RenderMessage | None = None
    resize_handler: ResizeCallback | None = None
    busy: bool = False
    parked: RenderMessage | None = None
    rerender: bool = False


class ClientRenderHost:
    """Receives render messages and invokes rendering scripts.

    Args:
        events: Event channel backing ``context.set_input``.
        sink: Error sink for script, codec, and channel failures.
        renderers: Initial ``renderer_ref -> callable`` map.
        collector: Optional collector for applied / superseded renders.

    """

    def __init__(
        self,
        events: EventChannel | None = None,
        *,
        sink: ErrorSink | None = None,
        renderers: Mapping[str, RendererFunc] | None = None,
        collector: BridgeCollector | None = None,
    ) -> None:
        self._events = events
        self._sink = sink
        self._collector = collector
        self._renderers: dict[str, RendererFunc] = dict(renderers or {})
        self._surfaces: dict[str, Surface] = {}
        self._buffered: dict[str, RenderMessage] = {}
        # Last applied token per binding; survives unmount/remount.
        self._tokens: dict[str, int] = {}
        self._closed = False

    # ----- Renderers -----

    def register_renderer(self, ref: str, renderer: RendererFunc) -> None:
        """Make *renderer* available under the server-side ``renderer_ref``."""
        self._renderers[ref] = renderer

    def renderer(self, ref: str) -> Callable[[RendererFunc], RendererFunc]:
        """Decorator form of ``register_renderer``."""

        def decorator(func: RendererFunc) -> RendererFunc:
            self.register_renderer(ref, func)
            return func

        return decorator

    # ----- Surfaces -----

    def mount(
        self,
        name: str,
        container: Any = None,
        *,
        width: int | None = None,
        height: int | None = None,
    ) -> Surface:
        """Bind a container to *name* and apply any buffered render.

        Mounting a name that is already mounted moves it: the new container
        replaces the old one, and *width* / *height* replace the current
        dimensions when given.  Render state and the last payload are kept.

        """
        if self._closed:
            raise DuetError("render host has been torn down")
        surface = self._surfaces.get(name)
        if surface is None:
            surface = Surface(name=name, container=container, width=width, height=height)
            self._surfaces[name] = surface
        else:
            surface.container = container
            if width is not None:
                surface.width = width
            if height is not None:
                surface.height = height
        buffered = self._buffered.pop(name, None)
        if buffered is not None:
            self._apply(surface, buffered)
        return surface

    def unmount(self, name: str) -> bool:
        """Remove the surface for *name*.  Returns False if none was mounted."""
        surface = self._surfaces.pop(name, None)
        if surface is None:
            return False
        surface.state = SurfaceState.UNMOUNTED
        surface.parked = None
        surface.resize_handler = None
        return True

    def surface(self, name: str) -> Surface | None:
        return self._surfaces.get(name)

    def state_of(self, name: str) -> SurfaceState:
        surface = self._surfaces.get(name)
        return surface.state if surface is not None else SurfaceState.UNMOUNTED

    def buffered(self, name: str) -> RenderMessage | None:
        """The message waiting for *name* to be mounted, if any."""
        return self._buffered.get(name)

    def resize(self, name: str, width: int, height: int) -> bool:
        """Resize a surface.

        Calls the script's ``on_resize`` handler when one is registered,
        otherwise re-invokes the renderer with the last applied payload.
        A re-render requested while the surface is updating runs once that
        update finishes, with the newest payload.

        Returns:
            True if the resize reached the script.

        """
        surface = self._surfaces.get(name)
        if surface is None:
            return False
        surface.width = width
        surface.height = height
        if surface.resize_handler is not None:
            try:
                surface.resize_handler(width, height)
            except Exception as exc:
                self._report(ScriptInvocationError(name, f"resize handler raised: {exc}"), name, exc)
                return False
            return True
        if surface.busy:
            surface.rerender = True
            return False
        if surface.last_message is not None:
            return self._apply(surface, surface.last_message)
        return False

    def teardown(self) -> int:
        """Unmount everything and drop buffered renders.

        Returns:
            Number of buffered or parked messages dropped.

        """
        dropped = len(self._buffered)
        self._buffered.clear()
        for name in tuple(self._surfaces):
            surface = self._surfaces[name]
            if surface.parked is not None:
                dropped += 1
            self.unmount(name)
        self._tokens.clear()
        self._closed = True
        return dropped

    # ----- Messages -----

    def on_message(self, msg: RenderMessage) -> bool:
        """Handle one render message.

        Returns:
            True if a rendering script completed for it now; False if it was
            superseded, buffered, parked, dropped, or the script failed.

        """
        if self._closed:
            return False

        name = msg.binding_name
        if self._is_stale(name, msg.token):
            return False

        surface = self._surfaces.get(name)
        if surface is None:
            waiting = self._buffered.get(name)
            if waiting is not None and waiting.token > msg.token:
                self._record_superseded(name, msg.token, waiting.token)
                return False
            self._buffered[name] = msg
            return False

        return self._apply(surface, msg)

    def _is_stale(self, name: str, token: int) -> bool:
        latest = self._tokens.get(name, 0)
        if token < latest:
            self._record_superseded(name, token, latest)
            return True
        return False

    def _apply(self, surface: Surface, msg: RenderMessage) -> bool:
        """Run the script for *msg*, then any message parked meanwhile."""
        if surface.busy:
            if surface.parked is None or surface.parked.token <= msg.token:
                surface.parked = msg
            return False

        surface.busy = True
        try:
            ok = self._invoke(surface, msg)
            while surface.state is not SurfaceState.UNMOUNTED:
                if surface.parked is not None:
                    parked, surface.parked = surface.parked, None
                    if self._is_stale(surface.name, parked.token):
                        continue
                    surface.rerender = False
                    ok = self._invoke(surface, parked)
                elif surface.rerender and surface.last_message is not None:
                    surface.rerender = False
                    ok = self._invoke(surface, surface.last_message)
                else:
                    break
        finally:
            surface.busy = False
            surface.rerender = False
        return ok

    def _invoke(self, surface: Surface, msg: RenderMessage) -> bool:
        name = surface.name
        # The token is consumed even if the script fails, so an older render
        # arriving later is still recognised as stale.
        self._tokens[name] = max(self._tokens.get(name, 0), msg.token)

        renderer = self._renderers.get(msg.renderer_ref)
        if renderer is None:
            self._report(
                ScriptInvocationError(name, f"no renderer registered as {msg.renderer_ref!r}"),
                name,
            )
            return False

        try:
            payload = codec.decode(msg.payload)
        except DuetError as exc:
            self._report(exc, name)
            return False

        initialized = surface.state is SurfaceState.RENDERED
        context = RenderContext(
            width=surface.width if surface.width is not None else msg.width,
            height=surface.height if surface.height is not None else msg.height,
            container=surface.container,
            initialized=initialized,
            options=msg.options,
            set_input=self._set_input,
            on_resize=lambda callback: setattr(surface, "resize_handler", callback),
        )

        t0 = time.perf_counter()
        try:
            renderer(payload, context)
        except Exception as exc:
            self._report(
                ScriptInvocationError(name, f"{type(exc).__name__}: {exc}"), name, exc,
            )
            return False
        duration_ms = (time.perf_counter() - t0) * 1000

        if surface.state is not SurfaceState.UNMOUNTED:
            surface.state = SurfaceState.RENDERED
            surface.last_message = msg
            surface.token = msg.token

        if self._collector is not None:
            self._collector.record_render_applied(
                name, token=msg.token, initialized=initialized, duration_ms=duration_ms,
            )
        return True

    def _set_input(self, name: str, value: Any, mode: DeliveryMode | str = DeliveryMode.VALUE) -> bool:
        if self._events is None:
            self._report(DuetError("no event channel attached to the render host"), name)
            return False
        return self._events.emit(name, value, mode)

    # ----- Reporting -----

    def _record_superseded(self, name: str, token: int, latest: int) -> None:
        if self._collector is not None:
            self._collector.record_render_superseded(
                name, token=token, latest_token=latest, stage="host",
            )

    def _report(self, error: DuetError, name: str, cause: BaseException | None = None) -> None:
        if cause is not None:
            error.__cause__ = cause
        if self._sink is not None:
            self._sink.report(error, where="render", name=name)
