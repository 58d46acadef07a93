"""Startup banner — status output when the server comes up.

Detects ``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from duet.config import DuetConfig


# ---------------------------------------------------------------------------
# ANSI helpers: respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_CYAN = "\033[36m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_YELLOW = "\033[33m" if _COLOR else ""


def _clickable_url(url: str) -> str:
    """Wrap *url* in an OSC 8 hyperlink escape if the terminal supports it."""
    if not _COLOR:
        return url
    return f"\033]8;;{url}\033\\{_BOLD}{_CYAN}{url}{_RESET}\033]8;;\033\\"


def format_banner(
    config: DuetConfig,
    *,
    setup_name: str = "",
    warnings: list[str] | None = None,
) -> str:
    """Build the startup banner text.

    Args:
        config: Resolved DuetConfig.
        setup_name: Qualified name of the session setup callable.
        warnings: Optional list of warning messages to display.

    """
    from duet import __version__

    badge = f"{_YELLOW}[debug]{_RESET}" if config.debug else f"{_GREEN}[serve]{_RESET}"
    lines: list[str] = [
        "",
        f"  {_BOLD}Duet{_RESET} {_DIM}v{__version__}{_RESET}  {badge}",
        f"  {_DIM}{'─' * 43}{_RESET}",
    ]

    if setup_name:
        lines.append(f"  {_DIM}├─{_RESET} setup: {setup_name}")
    lines.append(f"  {_DIM}├─{_RESET} renders on {_DIM}{config.stream_path}{_RESET} (SSE)")
    lines.append(f"  {_DIM}├─{_RESET} events on  {_DIM}{config.event_path}{_RESET} (POST)")
    lines.append(f"  {_DIM}└─{_RESET} stats on   {_DIM}{config.stats_path}{_RESET}")

    lines.append("")
    lines.append(f"  {_clickable_url(config.url)}")

    if warnings:
        lines.append("")
        lines.extend(f"  {_YELLOW}!{_RESET} {w}" for w in warnings)

    lines.append("")
    return "\n".join(lines)


def print_banner(
    config: DuetConfig,
    *,
    setup_name: str = "",
    warnings: list[str] | None = None,
) -> None:
    """Print the duet startup banner to stderr."""
    print(format_banner(config, setup_name=setup_name, warnings=warnings), file=sys.stderr)
