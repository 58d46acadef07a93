"""Bridge collector — one recording surface for every bridge component.

Components receive a ``BridgeCollector`` at construction and call its
``record_*`` methods; the collector stamps each fact with a monotonic
timestamp and stores it in the shared ``EventLog``.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.
    Safe for concurrent use from multiple sessions.

"""

from __future__ import annotations

from duet.observability.events import (
    ErrorReported,
    InputApplied,
    InputCoalesced,
    RenderApplied,
    RenderPublished,
    RenderSuperseded,
    SessionClosed,
    SessionOpened,
    now_ns,
)
from duet.observability.log import EventLog


class BridgeCollector:
    """Unified event collector for both directions of the bridge.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Render direction -----

    def record_render_published(
        self,
        session_id: str,
        name: str,
        *,
        token: int,
        payload_bytes: int = 0,
    ) -> None:
        """Record a render handed to the transport."""
        self._log.append(
            RenderPublished(
                session_id=session_id,
                name=name,
                token=token,
                payload_bytes=payload_bytes,
                timestamp_ns=now_ns(),
            )
        )

    def record_render_superseded(
        self,
        name: str,
        *,
        token: int,
        latest_token: int,
        stage: str,
        session_id: str = "",
    ) -> None:
        """Record a stale render that was dropped."""
        self._log.append(
            RenderSuperseded(
                session_id=session_id,
                name=name,
                token=token,
                latest_token=latest_token,
                stage=stage,  # type: ignore[arg-type]
                timestamp_ns=now_ns(),
            )
        )

    def record_render_applied(
        self,
        name: str,
        *,
        token: int,
        initialized: bool,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a completed script invocation."""
        self._log.append(
            RenderApplied(
                name=name,
                token=token,
                initialized=initialized,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Event direction -----

    def record_input_applied(
        self,
        session_id: str,
        name: str,
        *,
        mode: str,
        revision: int,
    ) -> None:
        """Record an input slot update."""
        self._log.append(
            InputApplied(
                session_id=session_id,
                name=name,
                mode=mode,  # type: ignore[arg-type]
                revision=revision,
                timestamp_ns=now_ns(),
            )
        )

    def record_input_coalesced(self, session_id: str, name: str, *, revision: int) -> None:
        """Record a VALUE event absorbed as a repeat."""
        self._log.append(
            InputCoalesced(
                session_id=session_id,
                name=name,
                revision=revision,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Errors and sessions -----

    def record_error(
        self,
        error: BaseException,
        *,
        where: str,
        name: str = "",
        session_id: str = "",
    ) -> None:
        """Record a failure reported through the error sink."""
        self._log.append(
            ErrorReported(
                kind=type(error).__name__,
                where=where,
                name=name,
                message=str(error),
                timestamp_ns=now_ns(),
                session_id=session_id,
            )
        )

    def record_session_opened(self, session_id: str) -> None:
        """Record a new client session."""
        self._log.append(SessionOpened(session_id=session_id, timestamp_ns=now_ns()))

    def record_session_closed(self, session_id: str, *, discarded: int = 0) -> None:
        """Record a session teardown."""
        self._log.append(
            SessionClosed(session_id=session_id, discarded=discarded, timestamp_ns=now_ns())
        )
