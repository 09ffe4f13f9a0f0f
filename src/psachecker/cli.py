"""
psachecker CLI entry point.

This module provides the command-line interface for psachecker.
"""

from __future__ import annotations

import argparse
import logging
import sys

from psachecker import __version__
from psachecker.cli_cluster import add_cluster_parser, cmd_inspect_cluster
from psachecker.cli_common import connection_parent, resolve_settings
from psachecker.cli_workloads import add_workloads_parser, cmd_inspect_workloads
from psachecker.errors import PSACheckerError
from psachecker.observability.logging import configure_logging

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="psachecker",
        description="psachecker - recommend Pod Security Admission levels",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"psachecker {__version__}",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )

    parser.add_argument(
        "--log-format",
        choices=["human", "json"],
        help="Log output format (default: human)",
    )

    parser.add_argument(
        "--config",
        help="Configuration file (JSON or YAML)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    parents = [connection_parent()]

    add_workloads_parser(subparsers, parents)
    add_cluster_parser(subparsers, parents)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    command_handlers = {
        "inspect-workloads": cmd_inspect_workloads,
        "inspect-cluster": cmd_inspect_cluster,
    }

    try:
        settings = resolve_settings(args)
        configure_logging(level=settings.log_level, format=settings.log_format)
        return command_handlers[args.command](args, settings)
    except PSACheckerError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
