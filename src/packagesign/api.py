"""High-level convenience API for package signing.

Provides :func:`sign` and :func:`verify` that resolve credentials and
build the signing engine, key service and remote document signer with
sensible defaults.

For lower-level control, build a
:class:`~packagesign.ui.workflows.WorkflowContext` yourself and call
:func:`~packagesign.ui.batch.run_sign` or the per-package workflows in
:mod:`packagesign.ui.workflows` directly.
"""

from __future__ import annotations

__all__ = ["sign", "verify"]

import logging
import os
from typing import TYPE_CHECKING

from .config import resolve_credential_set
from .constants import DEFAULT_SIGNING_SERVICE_URL, DEFAULT_TIMESTAMP_URL
from .core.engine import HttpTimestamper, SigningEngine
from .core.package import PackageFormat
from .network.document_signer import SoapDocumentSigner
from .network.key_vault import KeyVaultService
from .ui.batch import resolve_packages, run_sign, run_verify
from .ui.workflows import WorkflowContext

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from asn1crypto import x509 as asn1_x509

    from .config.credentials import CredentialSet
    from .ui.batch import BatchResult

_logger = logging.getLogger(__name__)


def _context(
    credentials: CredentialSet | None,
    timestamp_url: str | None,
    trusted_certificates: Sequence[asn1_x509.Certificate],
    on_verification_error: str,
) -> WorkflowContext:
    if credentials is None:
        credentials = resolve_credential_set(environ=os.environ)
    timestamper = HttpTimestamper(timestamp_url) if timestamp_url else None
    return WorkflowContext(
        credentials=credentials,
        key_service=KeyVaultService(),
        engine=SigningEngine(
            timestamper=timestamper, trusted_certificates=tuple(trusted_certificates)
        ),
        on_verification_error=on_verification_error,
    )


def sign(
    location: Path,
    package_format: PackageFormat | str,
    output_dir: Path | None = None,
    *,
    credentials: CredentialSet | None = None,
    timestamp_url: str | None = DEFAULT_TIMESTAMP_URL,
    signing_service_url: str = DEFAULT_SIGNING_SERVICE_URL,
    trusted_certificates: Sequence[asn1_x509.Certificate] = (),
    on_verification_error: str = "abort",
) -> BatchResult:
    """Sign a package file, or every package in a directory.

    Args:
        location: Package file or directory to search.
        package_format: ``PackageFormat`` or its value (``"dmapp"``, ``"dmprotocol"``).
        output_dir: Where signed packages go. Required for simple packages;
            composite packages are overwritten in place when omitted.
        credentials: Credentials to use. Resolved from the environment and
            saved config when omitted.
        timestamp_url: RFC 3161 authority, or None to sign without a timestamp.
        signing_service_url: SOAP endpoint used for composite packages.
        trusted_certificates: Trust anchors for checking existing signatures.
        on_verification_error: ``"abort"`` or ``"sign"``.

    Returns:
        The batch result; per-package failures are reported there.

    Raises:
        InvalidFileTypeError: If ``location`` is a file with the wrong extension.
        PackageSignError: If ``location`` does not exist.
    """
    package_format = PackageFormat(package_format)
    packages = resolve_packages(location, package_format)
    context = _context(credentials, timestamp_url, trusted_certificates, on_verification_error)
    document_signer = None
    if package_format is PackageFormat.COMPOSITE:
        document_signer = SoapDocumentSigner(signing_service_url)
    _logger.debug("Signing %d package(s) from %s", len(packages), location)
    return run_sign(packages, package_format, output_dir, context, document_signer)


def verify(
    location: Path,
    package_format: PackageFormat | str,
    *,
    credentials: CredentialSet | None = None,
    trusted_certificates: Sequence[asn1_x509.Certificate] = (),
) -> BatchResult:
    """Verify a package file, or every package in a directory.

    When the credentials name a Key Vault certificate, only packages signed
    with exactly that certificate pass.

    Raises:
        InvalidFileTypeError: If ``location`` is a file with the wrong extension.
        PackageSignError: If ``location`` does not exist.
    """
    package_format = PackageFormat(package_format)
    packages = resolve_packages(location, package_format)
    context = _context(credentials, None, trusted_certificates, "abort")
    return run_verify(packages, package_format, context)
