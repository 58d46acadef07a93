"""Wire envelope — the message shapes that cross the server/client boundary.

Two one-way message kinds share a single JSON envelope::

    {"type": "render", "name": "chart", "freshnessToken": 5,
     "rendererRef": "bars", "dimensions": {"width": 960, "height": 540},
     "options": {...}, "payload": <codec value>}

    {"type": "event", "name": "bar_clicked", "deliveryMode": "EVENT",
     "payload": <codec value>}

The codec payload is spliced in verbatim as a JSON value rather than quoted
as a string, so a browser script reads ``JSON.parse(data).payload`` directly.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from duet._errors import ProtocolError, UnsupportedTypeError
from duet._types import DeliveryMode
from duet.wire import codec

RENDER = "render"
EVENT = "event"


@dataclass(frozen=True, slots=True)
class RenderMessage:
    """One server-to-client render, constructed per recomputation.

    Attributes:
        binding_name: The output binding (and client surface) it targets.
        payload: Codec-encoded value.
        renderer_ref: Opaque handle naming the rendering script.
        width: Sizing hint from the binding options.
        height: Sizing hint from the binding options.
        options: Binding options forwarded to the script.
        token: Freshness token (the recomputation's sequence number).

    """

    binding_name: str
    payload: bytes
    renderer_ref: str
    width: int
    height: int
    token: int
    options: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True, slots=True)
class InputEvent:
    """One client-to-server input update emitted by a rendering script.

    Attributes:
        input_name: Server-visible input name (independent of any binding).
        value: Codec-encoded value.
        mode: Delivery mode governing coalescing on the server.

    """

    input_name: str
    value: bytes
    mode: DeliveryMode = DeliveryMode.VALUE


type Envelope = RenderMessage | InputEvent


def _splice(header: dict[str, Any], payload: bytes) -> str:
    """Serialize *header* and append the raw codec payload as ``payload``."""
    head = json.dumps(header, ensure_ascii=False, separators=(",", ":"))
    return f'{head[:-1]},"payload":{payload.decode("utf-8")}}}'


def encode_envelope(message: Envelope) -> str:
    """Serialize a RenderMessage or InputEvent to envelope text."""
    if isinstance(message, RenderMessage):
        header: dict[str, Any] = {
            "type": RENDER,
            "name": message.binding_name,
            "freshnessToken": message.token,
            "rendererRef": message.renderer_ref,
            "dimensions": {"width": message.width, "height": message.height},
            "options": dict(message.options),
        }
        return _splice(header, message.payload)

    if isinstance(message, InputEvent):
        header = {
            "type": EVENT,
            "name": message.input_name,
            "deliveryMode": str(message.mode),
        }
        return _splice(header, message.value)

    raise ProtocolError(f"cannot encode {type(message).__name__} as an envelope")


def _field(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    value = data.get(key)
    if not isinstance(value, kind) or isinstance(value, bool) and kind is int:
        raise ProtocolError(f"envelope field {key!r} missing or invalid: {value!r}")
    return value


def decode_envelope(text: str | bytes) -> Envelope:
    """Parse envelope text back into a RenderMessage or InputEvent.

    Raises:
        ProtocolError: Malformed JSON, unknown type, or missing fields.
        UnsupportedTypeError: The embedded payload is outside the codec set.

    """
    try:
        data = codec.decode(text)
    except UnsupportedTypeError as exc:
        raise ProtocolError(f"malformed envelope: {exc}") from exc

    if not isinstance(data, dict):
        raise ProtocolError("envelope must be a JSON object")
    if "payload" not in data:
        raise ProtocolError("envelope has no payload")

    kind = data.get("type")
    name = _field(data, "name", str)
    payload = codec.encode(data["payload"])

    if kind == RENDER:
        dims = _field(data, "dimensions", dict)
        options = data.get("options") or {}
        if not isinstance(options, dict):
            raise ProtocolError(f"envelope field 'options' must be an object: {options!r}")
        return RenderMessage(
            binding_name=name,
            payload=payload,
            renderer_ref=_field(data, "rendererRef", str),
            width=_field(dims, "width", int),
            height=_field(dims, "height", int),
            token=_field(data, "freshnessToken", int),
            options=options,
        )

    if kind == EVENT:
        raw_mode = data.get("deliveryMode", DeliveryMode.VALUE.value)
        try:
            mode = DeliveryMode(raw_mode)
        except ValueError as exc:
            raise ProtocolError(f"unknown delivery mode: {raw_mode!r}") from exc
        return InputEvent(input_name=name, value=payload, mode=mode)

    raise ProtocolError(f"unknown envelope type: {kind!r}")
