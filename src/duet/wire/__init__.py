"""Wire format — payload codec and message envelopes."""

from duet.wire.codec import canonical, decode, encode, encode_table, same_payload, to_records, validate
from duet.wire.envelope import (
    Envelope,
    InputEvent,
    RenderMessage,
    decode_envelope,
    encode_envelope,
)

__all__ = [
    "Envelope",
    "InputEvent",
    "RenderMessage",
    "canonical",
    "decode",
    "decode_envelope",
    "encode",
    "encode_envelope",
    "encode_table",
    "same_payload",
    "to_records",
    "validate",
]
