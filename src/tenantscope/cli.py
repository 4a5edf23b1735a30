"""
tenantscope CLI entry point.

This module provides the command-line interface for tenantscope.
"""

from __future__ import annotations

import argparse
import sys

from tenantscope import __version__
from tenantscope.cli_commands import (
    EXIT_USAGE,
    cmd_assess,
    cmd_inventory,
    cmd_modules,
    cmd_permissions,
)
from tenantscope.observability import configure_from_environment, configure_logging


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="tenantscope",
        description="tenantscope - Microsoft 365 tenant security posture assessment",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"tenantscope {__version__}",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # assess command
    assess_parser = subparsers.add_parser("assess", help="Run security posture assessment")
    assess_parser.add_argument(
        "--config",
        required=True,
        help="Path to configuration file (JSON or YAML)",
    )
    assess_parser.add_argument(
        "--domains",
        help="Comma-separated assessment domains (default: configured or all)",
    )
    assess_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )

    # inventory command
    inventory_parser = subparsers.add_parser("inventory", help="Collect tenant inventory")
    inventory_parser.add_argument(
        "--config",
        required=True,
        help="Path to configuration file (JSON or YAML)",
    )
    inventory_parser.add_argument(
        "--domains",
        help="Comma-separated inventory domains (default: configured or all)",
    )
    inventory_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )

    # modules command
    modules_parser = subparsers.add_parser(
        "modules", help="List modules and their required permissions"
    )
    modules_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )

    # permissions command
    permissions_parser = subparsers.add_parser(
        "permissions", help="Validate granted Graph permissions per module"
    )
    permissions_parser.add_argument(
        "--config",
        required=True,
        help="Path to configuration file (JSON or YAML)",
    )
    permissions_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else EXIT_USAGE

    configure_from_environment()
    if args.verbose:
        configure_logging(level="DEBUG" if args.verbose > 1 else "INFO")

    if args.command is None:
        parser.print_help()
        return 0

    command_handlers = {
        "assess": cmd_assess,
        "inventory": cmd_inventory,
        "modules": cmd_modules,
        "permissions": cmd_permissions,
    }

    handler = command_handlers.get(args.command)
    if handler:
        return handler(args)

    print(f"Unknown command: {args.command}")
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
