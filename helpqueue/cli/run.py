"""Server entry point.

Loads a server layout file, wires the queues and the dispatcher, and serves
the interaction API over HTTP.  Queues are drawn to the terminal.

Usage::

    helpqueue-serve --layout layout.json
    helpqueue-serve --layout layout.json --port 9000 --log-level DEBUG
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from aiohttp import web
from pydantic import ValidationError
from rich.console import Console

from helpqueue.runtime.config.settings import cfg
from helpqueue.runtime.server.app import AppFactory, QuietAccessLogger
from helpqueue.runtime.server.layout import Layout

from .console import ConsoleRenderer

logger = logging.getLogger(__name__)
console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="helpqueue-serve",
        description="Serve help queues over HTTP.",
    )
    parser.add_argument(
        "-l", "--layout",
        type=str,
        default=None,
        help="Server layout JSON file (default: <data dir>/layout.json).",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Interface to bind.",
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port to listen on (default: HELPQUEUE_PORT or 8080).",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (default: HELPQUEUE_LOG_LEVEL or INFO).",
    )
    parser.add_argument(
        "--no-extensions",
        action="store_true",
        default=False,
        help="Start without the optional extensions.",
    )
    return parser


def _load_layout(args: argparse.Namespace) -> Layout:
    path = Path(args.layout) if args.layout else cfg.layout_path
    if not path.is_file():
        console.print(f"[red]Error:[/red] layout file not found: {path}")
        sys.exit(1)
    try:
        layout = Layout.load(path)
    except (ValueError, ValidationError) as exc:
        console.print(f"[red]Error:[/red] invalid layout {path}: {exc}")
        sys.exit(1)
    if not layout.servers:
        console.print(f"[yellow]Warning:[/yellow] {path} declares no servers.")
    return layout


def _configure_logging(level: str | None) -> None:
    if level:
        cfg.log_level = level.upper()
    logging.basicConfig(
        level=cfg.log_level_value,
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``helpqueue-serve``."""
    args = _build_parser().parse_args(argv)
    _configure_logging(args.log_level)
    layout = _load_layout(args)

    factory = AppFactory(
        layout,
        ConsoleRenderer(console),
        extensions=[] if args.no_extensions else None,
    )
    port = args.port or cfg.port
    console.print(
        f"[bold green]helpqueue-serve[/bold green] {len(layout.servers)} server(s) "
        f"on {args.host}:{port}\n"
    )
    web.run_app(
        factory.build(),
        host=args.host,
        port=port,
        access_log_class=QuietAccessLogger,
        print=None,
    )


if __name__ == "__main__":
    main()
