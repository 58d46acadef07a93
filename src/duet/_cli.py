"""Duet CLI — duet serve.

Entry point for the ``duet`` command-line interface.
"""

from __future__ import annotations

import argparse
import importlib
import sys
from typing import Any

from duet._errors import ConfigError


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the duet CLI."""
    parser = argparse.ArgumentParser(
        prog="duet",
        description="Bidirectional bridge between a server reactive graph and client scripts.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # duet serve
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the bridge server for a setup function",
    )
    serve_parser.add_argument("target", help="Setup callable as module:function")
    serve_parser.add_argument("--root", default=".", help="Directory holding duet.yaml / duet.toml")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")
    serve_parser.add_argument(
        "--debug", action="store_true", default=None, help="Enable debug mode",
    )

    return parser


def _get_version() -> str:
    """Get the package version."""
    from duet import __version__

    return __version__


def resolve_target(target: str) -> Any:
    """Import ``module:attr`` and return the attribute.

    Raises:
        ConfigError: Malformed target, missing module, or missing attribute.

    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"target must look like module:function, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"cannot import {module_name!r}: {exc}") from exc
    try:
        obj = getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"module {module_name!r} has no attribute {attr!r}") from exc
    if not callable(obj):
        raise ConfigError(f"{target} is not callable")
    return obj


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from duet.app import serve

    if args.command == "serve":
        try:
            setup = resolve_target(args.target)
        except ConfigError as exc:
            print(f"  Error: {exc}", file=sys.stderr)
            sys.exit(2)
        serve(setup, root=args.root, host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
