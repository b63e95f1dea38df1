"""Campaign Ally – unified CLI dispatcher.

All subcommands live in ``campaign_ally/commands/*.py`` and expose a
``register(subparsers)`` function that adds themselves to argparse.
"""
from __future__ import annotations

import argparse
import logging
import sys

from campaign_ally.commands.registry import register_all


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="campaign_ally",
        description="Campaign Ally: TTRPG session prep CLI",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")
    register_all(sub)
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    # Each command stores a ``func`` on the namespace
    rc = args.func(args)
    sys.exit(rc or 0)
