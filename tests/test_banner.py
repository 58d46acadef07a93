"""Tests for duet.banner — startup banner output."""

from __future__ import annotations

import io
import sys
from unittest.mock import patch

from duet.banner import format_banner, print_banner
from duet.config import DuetConfig


class TestPrintBanner:
    """Tests for the startup banner."""

    def _capture_banner(self, config: DuetConfig | None = None, **kwargs: object) -> str:
        """Call print_banner and capture stderr output."""
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            print_banner(config or DuetConfig(), **kwargs)
        return buf.getvalue()

    def test_serve_banner(self) -> None:
        output = self._capture_banner(setup_name="app:setup")

        assert "Duet" in output
        assert "[serve]" in output
        assert "setup: app:setup" in output
        assert "http://127.0.0.1:8000" in output

    def test_debug_badge(self) -> None:
        output = self._capture_banner(DuetConfig(debug=True))

        assert "[debug]" in output

    def test_endpoints_listed(self) -> None:
        output = self._capture_banner(DuetConfig(stream_path="/live", stats_path="/numbers"))

        assert "/live" in output
        assert "/__duet/event" in output
        assert "/numbers" in output

    def test_setup_line_omitted(self) -> None:
        output = self._capture_banner()

        assert "setup:" not in output

    def test_warnings_displayed(self) -> None:
        output = self._capture_banner(warnings=["No outputs declared"])

        assert "No outputs declared" in output

    def test_format_matches_print(self) -> None:
        config = DuetConfig(port=9001)
        assert self._capture_banner(config) == format_banner(config) + "\n"
