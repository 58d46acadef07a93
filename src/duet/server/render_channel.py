"""Render channel — pushes recomputed outputs to the client surface.

One channel per session.  ``publish()`` encodes a value, stamps it with the
recomputation's freshness token, and hands the resulting ``RenderMessage``
to the session's transport.

Freshness:
    Tokens are tracked per binding name.  A publish carrying a token lower
    than the highest one already published for that binding belongs to a
    superseded recomputation and is dropped here, before it reaches the
    wire.  The client host applies the same rule on arrival, so reordering
    inside the transport cannot resurrect a stale render either.

Failures are reported to the error sink and re-raised; retry policy belongs
to the reactive framework, not the channel.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from duet._errors import DeliveryError, UnknownBindingError, UnsupportedTypeError
from duet.server.bindings import Binding, BindingRegistry
from duet.wire import codec
from duet.wire.envelope import RenderMessage

if TYPE_CHECKING:
    from duet.observability.collector import BridgeCollector
    from duet.observability.sink import ErrorSink
    from duet.transport.protocol import RenderTransport

DEFAULT_WIDTH = 960
DEFAULT_HEIGHT = 540


def _dimension(options: dict[str, Any] | Any, key: str, default: int) -> int:
    value = options.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        return default
    return int(value)


class RenderChannel:
    """Server-to-client render publisher for one session.

    Args:
        bindings: The session's binding registry.
        transport: Where messages are delivered.
        session_id: Owning session.
        sink: Error sink for codec and delivery failures.
        collector: Optional collector for publish / supersede events.
        default_width: Width used when a binding sets none.
        default_height: Height used when a binding sets none.

    """

    def __init__(
        self,
        bindings: BindingRegistry,
        transport: RenderTransport,
        *,
        session_id: str = "",
        sink: ErrorSink | None = None,
        collector: BridgeCollector | None = None,
        default_width: int = DEFAULT_WIDTH,
        default_height: int = DEFAULT_HEIGHT,
    ) -> None:
        self._bindings = bindings
        self._transport = transport
        self._session_id = session_id
        self._sink = sink
        self._collector = collector
        self._default_width = default_width
        self._default_height = default_height
        # Highest token published per binding name.  Survives unregister so a
        # re-registered name keeps counting upward.
        self._tokens: dict[str, int] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def last_token(self, name: str) -> int:
        """Highest token published for *name* (0 if none)."""
        with self._lock:
            return self._tokens.get(name, 0)

    def publish(
        self,
        binding: Binding | str,
        value: Any,
        *,
        token: int | None = None,
    ) -> RenderMessage | None:
        """Encode *value* and deliver it to the surface bound to *binding*.

        Args:
            binding: A registered Binding or its name.
            value: Codec-encodable output value.
            token: Sequence number of the triggering recomputation.  When
                omitted, the next number for this binding is issued.

        Returns:
            The delivered message, or None if it was superseded.

        Raises:
            UnknownBindingError: *binding* is not registered in this session.
            UnsupportedTypeError: *value* is not encodable.
            DeliveryError: The channel is closed or the transport failed.

        """
        if self._closed:
            raise DeliveryError(f"session {self._session_id!r} is closed")

        try:
            bound = self._bindings.require(binding)
        except UnknownBindingError as exc:
            self._report(exc, binding.name if isinstance(binding, Binding) else binding)
            raise
        name = bound.name

        try:
            payload = codec.encode(value)
        except UnsupportedTypeError as exc:
            self._report(exc, name)
            raise

        # Claim the token: compare-and-swap against the latest published one.
        with self._lock:
            latest = self._tokens.get(name, 0)
            if token is None:
                token = latest + 1
            stale = token < latest
            if not stale:
                self._tokens[name] = token

        if stale:
            if self._collector is not None:
                self._collector.record_render_superseded(
                    name,
                    token=token,
                    latest_token=latest,
                    stage="channel",
                    session_id=self._session_id,
                )
            return None

        message = RenderMessage(
            binding_name=name,
            payload=payload,
            renderer_ref=bound.renderer_ref,
            width=_dimension(bound.options, "width", self._default_width),
            height=_dimension(bound.options, "height", self._default_height),
            token=token,
            options=bound.options,
        )

        try:
            self._transport.send_render(message)
        except DeliveryError as exc:
            self._report(exc, name)
            raise

        if self._collector is not None:
            self._collector.record_render_published(
                self._session_id, name, token=token, payload_bytes=len(payload),
            )
        return message

    def close(self) -> None:
        """Refuse further publishes (session ended)."""
        self._closed = True

    def _report(self, exc: BaseException, name: str) -> None:
        if self._sink is not None:
            self._sink.report(exc, where="render", name=name)
