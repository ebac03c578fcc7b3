#!/usr/bin/env python3
"""mdbook-ansi: render ANSI escapes in ``ansi`` code blocks for mdbook."""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from ansi_book import AnsiPreprocessor, parse_input
from ansi_errors import AnsiError
from ansi_settings import LOG_LEVEL, SERVER_HOST, SERVER_PORT, __version__

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Send log records to stderr; stdout carries the book JSON."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] (mdbook-ansi): %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    value = logging.getLevelName(level)
    root.setLevel(value if isinstance(value, int) else logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mdbook-ansi",
        description="A preprocessor that renders ANSI expansions in fenced code blocks.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    supports = sub.add_parser("supports", help="Check whether a renderer is supported by this preprocessor")
    supports.add_argument("renderer")

    serve = sub.add_parser("serve", help="Serve the preprocessor over HTTP")
    serve.add_argument("--host", default=SERVER_HOST)
    serve.add_argument("--port", type=int, default=SERVER_PORT)
    return parser.parse_args(argv)


def supports(renderer: str) -> int:
    if AnsiPreprocessor().supports_renderer(renderer):
        return 0
    logger.error("The ansi preprocessor does not support the '%s' renderer", renderer)
    return 1


def preprocess(stdin=None, stdout=None) -> int:
    """Read ``[context, book]`` from stdin and write the processed book."""
    # mdbook speaks UTF-8 regardless of the locale
    stdin = stdin or sys.stdin.buffer
    stdout = stdout or sys.stdout.buffer
    pre = AnsiPreprocessor()
    try:
        ctx, book = parse_input(stdin.read())
        pre.check_version(ctx)
        processed = pre.run(ctx, book)
    except ValidationError as exc:
        logger.error("Invalid preprocessor input: %s", exc)
        return 1
    except AnsiError as exc:
        logger.error("%s", exc)
        return 1
    stdout.write(processed.to_json().encode("utf-8"))
    stdout.flush()
    return 0


def serve(host: str, port: int) -> int:
    import uvicorn

    from ansi_server import app

    uvicorn.run(app, host=host, port=port)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging()

    if args.command == "supports":
        return supports(args.renderer)
    if args.command == "serve":
        return serve(args.host, args.port)
    return preprocess()


if __name__ == "__main__":
    raise SystemExit(main())
