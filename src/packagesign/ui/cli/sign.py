"""
Sign command: sign simple or composite packages.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from ...config import get_settings
from ...constants import DEFAULT_SIGNING_SERVICE_URL, ENV_SIGNING_SERVICE_URL
from ...core.package import PackageFormat
from ...errors import ConfigError
from ...network.document_signer import SoapDocumentSigner
from ..batch import run_sign
from ..helpers import pick_setting, print_batch_summary
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


def add_sign_parser(sub: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    p_sign = sub.add_parser("sign", help="Sign packages")
    formats = p_sign.add_subparsers(dest="format", metavar="FORMAT", required=True)

    p_simple = formats.add_parser("dmapp", help="Sign .dmapp packages")
    add_location_args(p_simple)
    p_simple.add_argument(
        "-o", "--output", required=True, type=Path, help="Directory for the signed packages"
    )
    _add_signing_args(p_simple)

    p_composite = formats.add_parser("dmprotocol", help="Sign .dmprotocol packages")
    add_location_args(p_composite)
    p_composite.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Directory for the signed packages (default: overwrite the input)",
    )
    _add_signing_args(p_composite)
    group = p_composite.add_argument_group("Signing service")
    group.add_argument("-d", "--domain", dest="signing_domain", help="Signing service domain")
    group.add_argument("-u", "--username", dest="signing_username", help="Signing service user")
    group.add_argument(
        "-p", "--password", dest="signing_password", help="Signing service password"
    )
    group.add_argument(
        "--signing-service-url",
        default=None,
        help=f"SOAP endpoint of the signing service (default: {DEFAULT_SIGNING_SERVICE_URL})",
    )


def _add_signing_args(parser: argparse.ArgumentParser) -> None:
    add_key_service_args(parser)
    add_trust_args(parser)
    ts = parser.add_mutually_exclusive_group()
    ts.add_argument("--timestamp-url", default=None, help="RFC 3161 timestamp authority URL")
    ts.add_argument(
        "--no-timestamp",
        action="store_true",
        default=False,
        help="Sign without a trusted timestamp",
    )
    parser.add_argument(
        "--sign-on-verification-error",
        action="store_true",
        default=False,
        help="Sign packages whose existing signature cannot be checked instead of failing them",
    )


def cmd_sign(args: argparse.Namespace) -> int:
    """Sign every package at the given location. Returns the exit code."""
    if not check_platform("sign"):
        return ExitCode.INVALID_PLATFORM

    package_format = PackageFormat(args.format)
    packages = locate_packages(args.package_location, package_format)
    if isinstance(packages, ExitCode):
        return packages

    try:
        credentials = resolve_credentials(args)
        context = build_context(args, credentials, timestamp=True)
    except ConfigError as e:
        _logger.error("%s", e)
        return ExitCode.FAIL

    document_signer = None
    if package_format is PackageFormat.COMPOSITE:
        url = pick_setting(
            args.signing_service_url,
            os.environ,
            ENV_SIGNING_SERVICE_URL,
            get_settings(),
            "signing_service_url",
            DEFAULT_SIGNING_SERVICE_URL,
        )
        document_signer = SoapDocumentSigner(url)

    _logger.info("Signing %d %s package(s)", len(packages), package_format.extension)
    result = run_sign(packages, package_format, args.output, context, document_signer)
    print_batch_summary(result, "sign", "signed")
    return result.exit_code
