"""Binding registry — named, session-scoped output bindings.

A binding ties one reactive output to one client surface.  Names are the
join key on both sides, so two active bindings in the same session may never
share a name.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from duet._errors import DuplicateBindingError, UnknownBindingError
from duet.wire import codec


@dataclass(frozen=True, slots=True)
class Binding:
    """A durable association between a server output and a client surface.

    Attributes:
        name: Unique (per session) output name; also the surface key.
        renderer_ref: Opaque handle to the rendering script.
        options: Configuration map shipped with every render (sizing, etc.).
        session_id: The session that owns the binding.

    """

    name: str
    renderer_ref: str
    session_id: str = ""
    options: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)


class BindingRegistry:
    """Active bindings of one session, keyed by name.

    Thread-safe: the binding map is protected by a lock.

    Args:
        session_id: Owning session, stamped on every binding.

    """

    def __init__(self, session_id: str = "") -> None:
        self._session_id = session_id
        self._bindings: dict[str, Binding] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        renderer_ref: str,
        options: Mapping[str, Any] | None = None,
    ) -> Binding:
        """Create and register a binding.

        Raises:
            DuplicateBindingError: If *name* is already bound in this session.
            UnsupportedTypeError: If *options* is not codec-encodable.

        """
        opts = dict(options or {})
        codec.validate(opts)
        binding = Binding(
            name=name,
            renderer_ref=renderer_ref,
            session_id=self._session_id,
            options=opts,
        )
        with self._lock:
            if name in self._bindings:
                msg = f"output {name!r} is already bound in session {self._session_id!r}"
                raise DuplicateBindingError(msg)
            self._bindings[name] = binding
        return binding

    def unregister(self, name: str) -> Binding | None:
        """Remove a binding (surface removed).  Returns it, or None if absent."""
        with self._lock:
            return self._bindings.pop(name, None)

    def get(self, name: str) -> Binding | None:
        with self._lock:
            return self._bindings.get(name)

    def require(self, binding: Binding | str) -> Binding:
        """Resolve *binding* (object or name) to the registered binding.

        A ``Binding`` object must be the currently registered one; a stale
        object from before an unregister/re-register is rejected.

        Raises:
            UnknownBindingError: If no matching binding is registered.

        """
        name = binding.name if isinstance(binding, Binding) else binding
        with self._lock:
            current = self._bindings.get(name)
        if current is None or (isinstance(binding, Binding) and binding is not current):
            raise UnknownBindingError(f"output {name!r} is not bound in this session")
        return current

    def names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._bindings)

    def clear(self) -> None:
        with self._lock:
            self._bindings.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._bindings

    def __iter__(self) -> Iterator[Binding]:
        with self._lock:
            return iter(tuple(self._bindings.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)
