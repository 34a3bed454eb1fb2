"""Command line entry point.

Usage:
    shareiscare                      Start the server
    shareiscare init [path]          Generate base configuration file
    shareiscare help                 Show this help
    shareiscare version              Show program version
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Sequence

from shareiscare import __version__
from shareiscare.config import CONFIG_FILENAME, Settings, load_config, save_config
from shareiscare.errors import ConfigIOError

logger = logging.getLogger(__name__)

EPILOG = f"""Usage:
  shareiscare                       Start the server
  shareiscare init [path]           Generate base configuration file
  shareiscare help                  Show this help
  shareiscare version               Show program version

Examples:
  shareiscare                       Start server with {CONFIG_FILENAME}
  shareiscare init                  Generate {CONFIG_FILENAME} in current directory
  shareiscare init my-config.yaml   Generate configuration in my-config.yaml
"""


def _announce_defaults(settings: Settings, path: Path) -> None:
    print(f"Configuration file generated: {path}")
    print(f"Default user: {settings.username} / Password: {settings.password}")
    print("IMPORTANT: It is recommended to change the default credentials.")


def cmd_init(path: Path) -> int:
    if path.exists():
        answer = input(f"The file {path} already exists. Do you want to overwrite it? (y/n): ")
        if answer.strip().lower() != "y":
            print("Operation cancelled.")
            return 0

    settings = Settings()
    try:
        save_config(settings, path)
    except ConfigIOError as exc:
        print(f"Error generating configuration: {exc}", file=sys.stderr)
        return 1
    _announce_defaults(settings, path)
    return 0


def cmd_serve(path: Path = Path(CONFIG_FILENAME)) -> int:
    from shareiscare.main import run_server, setup_logging

    try:
        settings = load_config(path)
    except ConfigIOError as exc:
        print(f"Error loading configuration: {exc}", file=sys.stderr)
        return 1

    setup_logging(settings.log_level)

    if not path.exists():
        logger.info("Configuration file not found. Creating %s with default values...", path)
        try:
            save_config(settings, path)
        except ConfigIOError as exc:
            logger.error("Could not save configuration file: %s", exc)
            return 1
        _announce_defaults(settings, path)

    try:
        return asyncio.run(run_server(settings, path))
    except KeyboardInterrupt:
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shareiscare",
        description=f"ShareIsCare v{__version__} - Simple file server",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument(
        "command",
        nargs="?",
        help="init, help or version (default: start the server)"
    )
    parser.add_argument(
        "path",
        nargs="?",
        help=f"Configuration file for init (default: {CONFIG_FILENAME})"
    )
    parser.add_argument(
        "-h", "--help",
        dest="show_help",
        action="store_true",
        help="Show this help"
    )
    parser.add_argument(
        "-v", "--version",
        dest="show_version",
        action="store_true",
        help="Show program version"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command.lower() if args.command else None

    if args.show_help or command == "help":
        print(parser.format_help(), end="")
        return 0
    if args.show_version or command == "version":
        print(f"ShareIsCare v{__version__}")
        return 0
    if command == "init":
        return cmd_init(Path(args.path or CONFIG_FILENAME))
    if command is None:
        return cmd_serve()

    print(f"Unknown command: {args.command}\n", file=sys.stderr)
    print(parser.format_help(), end="", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
