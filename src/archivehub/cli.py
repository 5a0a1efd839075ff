"""archivehub CLI - browse and install from a local + remote archive catalog.

Usage:
    archivehub tree               # Unified catalog tree (local/remote/both)
    archivehub tree -g Math -d 2  # One group, two levels
    archivehub ls <archive> [dir] # Files of an archive
    archivehub install <id>       # Install a group/archive with dependencies
    archivehub config             # Show or update settings

Global options:
    --primary URL   # Override the primary (local) catalog URL
    --remote URL    # Override the remote catalog URL ('' for none)
    -v / -vv        # Log progress / debug output
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from .catalog.commands import add_catalog_commands, run_catalog_command

console = Console(stderr=True)


def _setup_logging(verbosity: int) -> None:
    level = logging.ERROR
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    if verbosity < 3:
        # requests' connection pool is chatty at DEBUG
        logging.getLogger("urllib3").setLevel(max(level, logging.INFO))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archivehub",
        description="Browse and install archives from a local and a remote catalog.",
    )
    parser.add_argument("--primary", help="Primary (local) catalog URL")
    parser.add_argument("--remote", help="Remote catalog URL ('' for none)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More output (repeatable)")

    subparsers = parser.add_subparsers(dest="command")
    add_catalog_commands(parser, subparsers)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        return 2

    try:
        return run_catalog_command(args)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
