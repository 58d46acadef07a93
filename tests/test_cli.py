"""Tests for duet._cli — argument parsing and command dispatch."""

from __future__ import annotations

from typing import Any

import pytest

from duet._cli import _build_parser, main, resolve_target
from duet._errors import ConfigError


def example_setup(session: Any) -> None:
    """Setup callable resolved by the tests below."""


NOT_CALLABLE = 42


class TestBuildParser:
    """_build_parser — CLI argument parsing."""

    def test_serve_default_args(self) -> None:
        args = _build_parser().parse_args(["serve", "app:setup"])
        assert args.command == "serve"
        assert args.target == "app:setup"
        assert args.root == "."
        assert args.host is None
        assert args.port is None
        assert args.debug is None

    def test_serve_all_flags(self) -> None:
        args = _build_parser().parse_args([
            "serve", "app:setup",
            "--root", "conf/",
            "--host", "0.0.0.0",
            "--port", "9000",
            "--debug",
        ])
        assert args.root == "conf/"
        assert args.host == "0.0.0.0"
        assert args.port == 9000
        assert args.debug is True

    def test_serve_requires_target(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["serve"])

    def test_no_command_returns_none(self) -> None:
        assert _build_parser().parse_args([]).command is None

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["--version"])
        assert "duet 0.1.0" in capsys.readouterr().out


class TestResolveTarget:
    """resolve_target — module:function lookup."""

    def test_resolves(self) -> None:
        assert resolve_target(f"{__name__}:example_setup") is example_setup

    @pytest.mark.parametrize("target", ["nocolon", ":setup", "module:"])
    def test_malformed(self, target: str) -> None:
        with pytest.raises(ConfigError, match="module:function"):
            resolve_target(target)

    def test_missing_module(self) -> None:
        with pytest.raises(ConfigError, match="cannot import"):
            resolve_target("duet_no_such_module_xyz:setup")

    def test_missing_attribute(self) -> None:
        with pytest.raises(ConfigError, match="no attribute"):
            resolve_target(f"{__name__}:missing")

    def test_not_callable(self) -> None:
        with pytest.raises(ConfigError, match="not callable"):
            resolve_target(f"{__name__}:NOT_CALLABLE")


class TestMain:
    """main — command dispatch."""

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as info:
            main([])
        assert info.value.code == 0
        assert "serve" in capsys.readouterr().out

    def test_bad_target_exits(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as info:
            main(["serve", "nocolon"])
        assert info.value.code == 2
        assert "module:function" in capsys.readouterr().err

    def test_serve_dispatch(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[tuple[Any, dict[str, Any]]] = []

        def fake_serve(setup: Any, **kwargs: Any) -> None:
            calls.append((setup, kwargs))

        monkeypatch.setattr("duet.app.serve", fake_serve)
        main(["serve", f"{__name__}:example_setup", "--port", "9000"])

        ((setup, kwargs),) = calls
        assert setup is example_setup
        assert kwargs == {"root": ".", "host": None, "port": 9000, "debug": None}
