"""Command-line interface for webshell.

Provides the main entry point for serving the HTTP endpoint, or for
running a single command or hint lookup locally through the same
execution engine.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="webshell",
        description="Run host shell commands from the browser",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/webshell.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Start the HTTP endpoint server")

    run_parser = subparsers.add_parser("run", help="Execute one command and print the result")
    run_parser.add_argument("cmdline", help="Command line, passed to the shell verbatim")
    run_parser.add_argument(
        "--cwd", type=str, default=None,
        help="Directory to start in (default: current directory)",
    )

    hint_parser = subparsers.add_parser("hint", help="List completions for a partial token")
    hint_parser.add_argument("value", nargs="?", default="", help="Prefix to complete")
    hint_parser.add_argument(
        "--type", choices=["binary", "file"], default="binary",
        help="Complete executables on PATH or entries of the directory",
    )
    hint_parser.add_argument(
        "--cwd", type=str, default=None,
        help="Directory to list for file hints (default: current directory)",
    )

    return parser.parse_args(argv)


def _build_executor(settings, cwd: str | None):
    from webshell.engine.executor import Executor
    from webshell.engine.runner import Runner

    executor = Executor(runner=Runner.from_config(settings.runner))
    if cwd is not None and not executor.cwd(cwd):
        print(f"Cannot enter directory: {cwd}", file=sys.stderr)
        sys.exit(1)
    return executor


def _run_once(settings, args) -> int:
    executor = _build_executor(settings, args.cwd)
    result = executor.execute(args.cmdline)
    if result.output:
        print(result.output)
    print(f"{result.identity}:{result.working_directory}", file=sys.stderr)
    return 0


def _hint_once(settings, args) -> int:
    executor = _build_executor(settings, args.cwd)
    for match in executor.hint(args.value, args.type):
        print(match)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the webshell CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from webshell.config.settings import load_settings
    from webshell.engine.runner import RunnerError
    from webshell.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        logger.info("Starting endpoint server")
        from webshell.endpoint.server import main as serve
        serve(settings)
        return

    try:
        if args.command == "run":
            sys.exit(_run_once(settings, args))
        elif args.command == "hint":
            sys.exit(_hint_once(settings, args))
    except RunnerError as e:
        logger.error("%s", e)
        sys.exit(2)


if __name__ == "__main__":
    main()
