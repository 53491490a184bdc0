"""
Command-line interface for packagesign.

Argument parsing, logging setup and dispatch. Each command lives in
its own module and returns a process exit code.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from ...constants import __version__
from ...errors import ConfigError
from ..helpers import configure_logging
from ..workflows import ExitCode
from .config import add_config_parser, cmd_config
from .sign import add_sign_parser, cmd_sign
from .verify import add_verify_parser, cmd_verify

if TYPE_CHECKING:
    from collections.abc import Sequence

_logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="packagesign",
        description="Sign and verify .dmapp and .dmprotocol packages with an Azure Key Vault certificate.",
        epilog=(
            "Environment variables:\n"
            "  AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET\n"
            "  AZURE_KEY_VAULT_URL, AZURE_KEY_VAULT_CERTIFICATE\n"
            "  SIGNING_DOMAIN, SIGNING_USERNAME, SIGNING_PASSWORD, SIGNING_SERVICE_URL\n"
            "  PACKAGESIGN_TIMESTAMP_URL\n"
            "\n"
            "Command-line options take priority over environment variables,\n"
            "which take priority over values saved with 'packagesign config'.\n"
            "\n"
            "Exit codes: 0 ok, 1 failure, 2 unsupported platform,\n"
            "3 wrong file type, -1 unexpected error.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-V", "--version", action="version", version=f"packagesign {__version__}")
    parser.add_argument(
        "--debug", action="store_true", default=False, help="Enable debug logging"
    )
    parser.add_argument(
        "--minimum-log-level",
        default="INFO",
        metavar="LEVEL",
        help="Lowest log level to print: DEBUG, INFO, WARNING, ERROR (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command", help="Available commands")
    add_sign_parser(sub)
    add_verify_parser(sub)
    add_config_parser(sub)
    return parser


def run(argv: Sequence[str] | None = None) -> int:
    """Parse ``argv`` and run the command. Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(args.minimum_log_level, debug=args.debug)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.FAIL

    if args.command is None:
        parser.print_help()
        return ExitCode.FAIL

    _logger.debug("packagesign %s: %s", __version__, args.command)
    try:
        if args.command == "sign":
            return cmd_sign(args)
        if args.command == "verify":
            return cmd_verify(args)
        return cmd_config(args)
    except Exception:  # noqa: BLE001 -- last-resort boundary
        _logger.exception("Unexpected error in %s", args.command)
        return ExitCode.UNEXPECTED_EXCEPTION


def main(argv: Sequence[str] | None = None) -> None:
    sys.exit(int(run(argv)))


if __name__ == "__main__":
    main()
