"""Error sink — the single reporting interface for bridge failures.

Codec, transport and script failures never disappear silently: every
component reports them here and the hosting framework decides what to do.
The default sink records an ``ErrorReported`` event, prints a one-line
summary to stderr, and can forward a JSON error payload to the browser
(rendered there as an error toast).
"""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

    from duet.observability.collector import BridgeCollector


class ErrorSink(Protocol):
    """Anything that accepts reported bridge failures."""

    def report(self, error: BaseException, *, where: str, name: str = "") -> None: ...


def _extract_error_location(exc: BaseException) -> tuple[str, int]:
    """Extract the innermost filename and line number from an exception."""
    tb = exc.__traceback__
    if tb is None:
        cause = exc.__cause__
        if cause is not None and cause.__traceback__ is not None:
            tb = cause.__traceback__
        else:
            return "", 0

    # Walk to the innermost frame
    while tb.tb_next is not None:
        tb = tb.tb_next

    return tb.tb_frame.f_code.co_filename, tb.tb_lineno


def format_error_event(exc: BaseException, *, where: str = "", name: str = "") -> str:
    """Format an exception as a JSON payload for ``duet:error`` SSE events."""
    filename, lineno = _extract_error_location(exc)
    return json.dumps({
        "type": type(exc).__qualname__,
        "message": str(exc),
        "where": where,
        "name": name,
        "file": filename,
        "line": lineno,
    })


class CollectorErrorSink:
    """Default sink: event log + stderr line + optional client forwarding.

    Args:
        collector: Collector whose log receives ``ErrorReported`` events.
        forward: Optional callable receiving the JSON error payload
            (the server wires this to the session's SSE connections).
        verbose: Print a one-line summary to stderr.
        session_id: Session the sink belongs to, stamped on recorded errors.

    """

    __slots__ = ("_collector", "_forward", "_session_id", "_verbose")

    def __init__(
        self,
        collector: BridgeCollector | None = None,
        *,
        forward: Callable[[str], object] | None = None,
        verbose: bool = True,
        session_id: str = "",
    ) -> None:
        self._collector = collector
        self._forward = forward
        self._verbose = verbose
        self._session_id = session_id

    def report(self, error: BaseException, *, where: str, name: str = "") -> None:
        if self._collector is not None:
            self._collector.record_error(
                error, where=where, name=name, session_id=self._session_id,
            )

        if self._verbose:
            label = f"{where.title()} error ({name})" if name else f"{where.title()} error"
            print(
                f"  {label}: {type(error).__name__}: {error}",
                file=sys.stderr,
            )

        if self._forward is not None:
            self._forward(format_error_event(error, where=where, name=name))
