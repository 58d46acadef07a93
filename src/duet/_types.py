"""Shared type definitions for duet."""

from collections.abc import Callable
from enum import StrEnum
from typing import Any, Literal

# Server-visible name of an output binding (also the client surface key)
type BindingName = str

# Server-visible name of a reactive input slot
type InputName = str

# Session identifier (one per connected client)
type SessionID = str

# Monotonic per-binding recomputation sequence number
type FreshnessToken = int

# Codec-encoded wire bytes
type Payload = bytes

# Envelope discriminator
type EnvelopeKind = Literal["render", "event"]

# A rendering script: renderer(payload, context)
type RendererFunc = Callable[[Any, Any], Any]


class DeliveryMode(StrEnum):
    """How the input registry treats a repeated identical value.

    ``VALUE`` models state: identical consecutive values coalesce.
    ``EVENT`` models a signal: every emission counts, even a repeat.
    """

    VALUE = "VALUE"
    EVENT = "EVENT"
