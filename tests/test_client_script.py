"""Tests for duet.client_script — browser client injection middleware."""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import AsyncMock

import pytest

from duet.client_script import client_middleware, client_script, inject_script
from duet.config import DuetConfig


# ---------------------------------------------------------------------------
# Minimal response mock (frozen dataclass like Chirp's Response)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _MockResponse:
    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/html; charset=utf-8"
    headers: dict[str, str] | None = None


@dataclass(frozen=True, slots=True)
class _MockSSEResponse:
    """Non-HTML response (no body attribute in the right form)."""

    event_stream: object = None
    content_type: str = "text/event-stream"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_next(response: object) -> AsyncMock:
    """Create a mock 'next' middleware callable."""
    return AsyncMock(return_value=response)


def _mock_request() -> object:
    return object()


@pytest.fixture
def middleware():
    return client_middleware(DuetConfig())


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestClientScript:
    """The script block is wired to the configured endpoints."""

    def test_default_paths(self) -> None:
        script = client_script(DuetConfig())
        assert 'var STREAM = "/__duet/stream", EVENT = "/__duet/event"' in script
        assert "__STREAM__" not in script
        assert "__EVENT__" not in script

    def test_custom_paths(self) -> None:
        script = client_script(DuetConfig(stream_path="/live", event_path="/input"))
        assert '"/live"' in script
        assert '"/input"' in script

    def test_listens_for_every_event(self) -> None:
        script = client_script(DuetConfig())
        assert "EventSource" in script
        for event in ("duet:session", "duet:render", "duet:error"):
            assert event in script

    def test_drops_stale_tokens(self) -> None:
        assert "m.freshnessToken < last" in client_script(DuetConfig())

    def test_reports_failed_event_delivery(self) -> None:
        script = client_script(DuetConfig())
        assert "if (!resp.ok) _showError({type: 'DeliveryError'" in script
        assert "}).catch(function(err) {" in script
        assert ".catch(function() {})" not in script

    def test_reports_bad_render_envelope(self) -> None:
        assert "bad render envelope" in client_script(DuetConfig())


class TestInjectScript:
    """inject_script placement rules."""

    def test_before_body_close(self) -> None:
        assert inject_script("<body>x</body>", "<s/>") == "<body>x<s/></body>"

    def test_before_html_close(self) -> None:
        assert inject_script("<html>x</html>", "<s/>") == "<html>x<s/></html>"

    def test_appends(self) -> None:
        assert inject_script("<h1>x</h1>", "<s/>") == "<h1>x</h1><s/>"

    def test_only_first_body_close(self) -> None:
        result = inject_script("</body></body>", "<s/>")
        assert result == "<s/></body></body>"


class TestClientMiddleware:
    """Tests for client_middleware."""

    @pytest.mark.asyncio
    async def test_injects_script_before_body_close(self, middleware) -> None:
        html = "<html><body><h1>Hello</h1></body></html>"
        result = await middleware(_mock_request(), _make_next(_MockResponse(body=html)))

        assert "data-duet-client" in result.body
        assert result.body.index("data-duet-client") < result.body.index("</body>")

    @pytest.mark.asyncio
    async def test_decodes_bytes_body(self, middleware) -> None:
        response = _MockResponse(body=b"<body></body>")
        result = await middleware(_mock_request(), _make_next(response))

        assert isinstance(result.body, str)
        assert "data-duet-client" in result.body

    @pytest.mark.asyncio
    async def test_skips_non_html_response(self, middleware) -> None:
        response = _MockResponse(body='{"key": "value"}', content_type="application/json")
        result = await middleware(_mock_request(), _make_next(response))

        assert result is response

    @pytest.mark.asyncio
    async def test_skips_sse_response(self, middleware) -> None:
        response = _MockSSEResponse()
        result = await middleware(_mock_request(), _make_next(response))

        assert result is response

    @pytest.mark.asyncio
    async def test_preserves_status_code(self, middleware) -> None:
        response = _MockResponse(body="<body></body>", status=201)
        result = await middleware(_mock_request(), _make_next(response))

        assert result.status == 201
