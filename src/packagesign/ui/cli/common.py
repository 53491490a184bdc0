"""
Arguments and wiring shared by the sign and verify commands.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from ...config import get_settings, resolve_credential_set
from ...constants import DEFAULT_TIMESTAMP_URL, ENV_TIMESTAMP_URL
from ...core.engine import HttpTimestamper, SigningEngine
from ...core.package import PackageFormat
from ...errors import InvalidFileTypeError, PackageSignError
from ...network.key_vault import KeyVaultService
from ..batch import resolve_packages
from ..helpers import is_supported_platform, load_trusted_certificates, pick_setting
from ..workflows import ExitCode, WorkflowContext

if TYPE_CHECKING:
    import argparse
    from collections.abc import Mapping

    from ...config.credentials import CredentialSet

_logger = logging.getLogger(__name__)

# argparse dest -> CredentialSet field
_CREDENTIAL_ARGS = (
    "azure_tenant_id",
    "azure_client_id",
    "azure_client_secret",
    "azure_key_vault_url",
    "azure_key_vault_certificate",
    "signing_domain",
    "signing_username",
    "signing_password",
)


def add_location_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-pl",
        "--package-location",
        required=True,
        type=Path,
        help="Package file, or directory to search for packages",
    )


def add_key_service_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("Azure Key Vault")
    group.add_argument("-kvu", "--azure-key-vault-url", help="Key Vault URL")
    group.add_argument("-kvc", "--azure-key-vault-certificate", help="Certificate name")
    group.add_argument("-ati", "--azure-tenant-id", help="Azure tenant id")
    group.add_argument("-aci", "--azure-client-id", help="Azure client (application) id")
    group.add_argument("-acs", "--azure-client-secret", help="Azure client secret")


def add_trust_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--trusted-certificates",
        type=Path,
        default=None,
        help="PEM bundle of certificates the signer must be or be issued by",
    )


def check_platform(command: str) -> bool:
    """Log and return False when running on an unsupported platform."""
    if is_supported_platform():
        return True
    _logger.error("The %s command is only supported on Windows.", command)
    return False


def resolve_credentials(
    args: argparse.Namespace, environ: Mapping[str, str] | None = None
) -> CredentialSet:
    overrides = {name: getattr(args, name, None) for name in _CREDENTIAL_ARGS}
    return resolve_credential_set(overrides, os.environ if environ is None else environ)


def build_context(
    args: argparse.Namespace,
    credentials: CredentialSet,
    *,
    timestamp: bool,
    environ: Mapping[str, str] | None = None,
) -> WorkflowContext:
    """Assemble the collaborators one invocation runs with.

    Raises:
        ConfigError: If the trusted certificate file is unusable.
    """
    environ = os.environ if environ is None else environ
    timestamper = None
    if timestamp and not getattr(args, "no_timestamp", False):
        url = pick_setting(
            getattr(args, "timestamp_url", None),
            environ,
            ENV_TIMESTAMP_URL,
            get_settings(),
            "timestamp_url",
            DEFAULT_TIMESTAMP_URL,
        )
        timestamper = HttpTimestamper(url)
    on_error = "sign" if getattr(args, "sign_on_verification_error", False) else "abort"
    trusted = ()
    if getattr(args, "trusted_certificates", None) is not None:
        trusted = tuple(load_trusted_certificates(args.trusted_certificates))
    return WorkflowContext(
        credentials=credentials,
        key_service=KeyVaultService(),
        engine=SigningEngine(timestamper=timestamper, trusted_certificates=trusted),
        on_verification_error=on_error,
    )


def locate_packages(location: Path, package_format: PackageFormat) -> list[Path] | ExitCode:
    """Resolve the package list, or the exit code to stop with."""
    try:
        return resolve_packages(location, package_format)
    except InvalidFileTypeError as e:
        _logger.error("%s", e)
        return ExitCode.INVALID_FILE_TYPE
    except PackageSignError as e:
        _logger.error("%s", e)
        return ExitCode.FAIL
