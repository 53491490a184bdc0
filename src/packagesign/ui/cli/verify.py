"""
Verify command: check package signatures.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...core.package import PackageFormat
from ...errors import ConfigError
from ..batch import run_verify
from ..helpers import print_batch_summary
from ..workflows import ExitCode
from .common import (
    add_key_service_args,
    add_location_args,
    add_trust_args,
    build_context,
    check_platform,
    locate_packages,
    resolve_credentials,
)

if TYPE_CHECKING:
    import argparse

_logger = logging.getLogger(__name__)


def add_verify_parser(sub: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    p_verify = sub.add_parser("verify", help="Verify package signatures")
    formats = p_verify.add_subparsers(dest="format", metavar="FORMAT", required=True)
    for package_format in PackageFormat:
        p_format = formats.add_parser(
            package_format.value, help=f"Verify {package_format.extension} packages"
        )
        add_location_args(p_format)
        add_key_service_args(p_format)
        add_trust_args(p_format)


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify every package at the given location. Returns the exit code.

    Naming a Key Vault certificate restricts success to packages signed
    with exactly that certificate.
    """
    if not check_platform("verify"):
        return ExitCode.INVALID_PLATFORM

    package_format = PackageFormat(args.format)
    packages = locate_packages(args.package_location, package_format)
    if isinstance(packages, ExitCode):
        return packages

    try:
        credentials = resolve_credentials(args)
        context = build_context(args, credentials, timestamp=False)
    except ConfigError as e:
        _logger.error("%s", e)
        return ExitCode.FAIL

    result = run_verify(packages, package_format, context)
    print_batch_summary(result, "verify", "verified")
    return result.exit_code
