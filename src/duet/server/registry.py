"""Input registry — server-side cells fed by client input events.

Each input name owns one ``ReactiveInputSlot``.  The registry applies the
delivery-mode policy when an event arrives:

    VALUE   state semantics — a repeat of the current value (by codec-level
            equality) is absorbed: no revision bump, no notification.
    EVENT   signal semantics — every event bumps the revision and notifies,
            even when the value repeats (the same bar clicked twice).

After an applied update the registry calls ``notify(name)``, which the
session wires to the reactive engine's ``notify_input_changed``.

Before the first event a slot reads as ``UNSET``.  ``None`` is a legitimate
payload, so "unset" needs its own sentinel and its own predicate.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from duet._errors import UnsetSlotAccess
from duet._types import DeliveryMode
from duet.wire import codec

if TYPE_CHECKING:
    from duet.observability.collector import BridgeCollector
    from duet.wire.envelope import InputEvent


class _Unset:
    """Sentinel type for a slot that has never received an event."""

    __slots__ = ()
    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = _Unset()


@dataclass(slots=True)
class ReactiveInputSlot:
    """Mutable cell for one input name.

    Only the registry mutates a slot; callers treat it as a read handle.

    Attributes:
        name: Input name.
        value: Decoded current value, or ``UNSET``.
        encoded: Wire bytes of the current value (None while unset).
        revision: Incremented on every applied update, never otherwise.
        mode: Delivery mode of the last applied event (None while unset).

    """

    name: str
    value: Any = UNSET
    encoded: bytes | None = None
    revision: int = 0
    mode: DeliveryMode | None = None

    @property
    def is_set(self) -> bool:
        return self.value is not UNSET

    def require(self) -> Any:
        """Return the value, or raise ``UnsetSlotAccess`` while unset."""
        if self.value is UNSET:
            raise UnsetSlotAccess(self.name)
        return self.value


class InputRegistry:
    """Slots of one session, with delivery-mode policy.

    Thread-safe: slot lookup and the compare-then-bump update run under a
    lock; the notification runs after the lock is released so the reactive
    engine may read slots (or apply further events) re-entrantly.

    Args:
        session_id: Owning session (for observability).
        notify: Called with the input name after every applied update.
        collector: Optional collector for ``InputApplied`` / ``InputCoalesced``.

    """

    def __init__(
        self,
        session_id: str = "",
        *,
        notify: Callable[[str], object] | None = None,
        collector: BridgeCollector | None = None,
    ) -> None:
        self._session_id = session_id
        self._notify = notify
        self._collector = collector
        self._slots: dict[str, ReactiveInputSlot] = {}
        self._lock = threading.Lock()

    def bind_notify(self, notify: Callable[[str], object] | None) -> None:
        """Point change notifications at the reactive engine."""
        self._notify = notify

    def register(self, name: str) -> ReactiveInputSlot:
        """Look up or create the slot for *name* and return it as a handle."""
        with self._lock:
            slot = self._slots.get(name)
            if slot is None:
                slot = self._slots[name] = ReactiveInputSlot(name=name)
            return slot

    def apply(self, event: InputEvent) -> bool:
        """Apply one input event under its delivery-mode policy.

        Returns:
            True if the slot changed (revision bumped, graph notified),
            False if a VALUE repeat was coalesced.

        Raises:
            UnsupportedTypeError: If the event value does not decode.

        """
        value = codec.decode(event.value)

        with self._lock:
            slot = self._slots.get(event.input_name)
            if slot is None:
                slot = self._slots[event.input_name] = ReactiveInputSlot(name=event.input_name)

            if (
                event.mode is DeliveryMode.VALUE
                and slot.encoded is not None
                and codec.same_payload(slot.encoded, event.value)
            ):
                revision = slot.revision
                applied = False
            else:
                slot.value = value
                slot.encoded = event.value
                slot.mode = event.mode
                slot.revision += 1
                revision = slot.revision
                applied = True

        if not applied:
            if self._collector is not None:
                self._collector.record_input_coalesced(
                    self._session_id, event.input_name, revision=revision,
                )
            return False

        if self._collector is not None:
            self._collector.record_input_applied(
                self._session_id, event.input_name,
                mode=str(event.mode), revision=revision,
            )
        if self._notify is not None:
            self._notify(event.input_name)
        return True

    # ----- Reads -----

    def slot(self, name: str) -> ReactiveInputSlot | None:
        with self._lock:
            return self._slots.get(name)

    def get(self, name: str, default: Any = UNSET) -> Any:
        """Current value of *name*, or *default* (``UNSET``) if never set."""
        with self._lock:
            slot = self._slots.get(name)
            if slot is None or slot.value is UNSET:
                return default
            return slot.value

    def is_set(self, name: str) -> bool:
        """True once *name* has received at least one event."""
        with self._lock:
            slot = self._slots.get(name)
            return slot is not None and slot.value is not UNSET

    def require(self, name: str) -> Any:
        """Current value of *name*.

        Raises:
            UnsetSlotAccess: If no event has arrived for *name* yet.  Reactive
                computations let this propagate to abstain.

        """
        value = self.get(name)
        if value is UNSET:
            raise UnsetSlotAccess(name)
        return value

    def revision(self, name: str) -> int:
        with self._lock:
            slot = self._slots.get(name)
            return slot.revision if slot is not None else 0

    def names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._slots)

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)
