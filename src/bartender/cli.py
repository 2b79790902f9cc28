"""Command-line entry point.

Loads the config, validates the template, then prints one status line
per change until SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from collections.abc import Sequence

from bartender import __version__
from bartender.app import Bartender
from bartender.config import BartenderConfig, resolve_config_path
from bartender.exceptions import BartenderError

_LOG = logging.getLogger("bartender")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bartender",
        description="Merge timers, FIFOs and subprocess output into one status line.",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Config file (default: $BARTENDER_CONFIG or ~/.bartenderrc).",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate config and template, then exit.",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    verbosity.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Only log warnings and errors.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


async def _serve(app: Bartender) -> None:
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()
    signals = (signal.SIGINT, signal.SIGTERM)
    for signum in signals:
        loop.add_signal_handler(signum, shutdown.set)
    try:
        await app.run(shutdown)
    finally:
        for signum in signals:
            loop.remove_signal_handler(signum)


def _silence_stdout() -> None:
    # Python flushes stdout at exit; point it at /dev/null so a closed pipe
    # doesn't produce a second BrokenPipeError.
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    try:
        path = resolve_config_path(args.config)
        config = BartenderConfig.from_file(path)
        app = Bartender(config)
    except BartenderError as exc:
        print(f"bartender: {exc}", file=sys.stderr)
        return 1

    _LOG.debug("Loaded %s with %d source(s)", path, len(config.sources))
    if args.check:
        print(f"bartender: {path} is valid ({len(config.sources)} source(s))", file=sys.stderr)
        return 0

    try:
        asyncio.run(_serve(app))
    except KeyboardInterrupt:
        pass
    except BrokenPipeError:
        _LOG.error("stdout was closed, exiting")
        _silence_stdout()
        return 1
    return 0
