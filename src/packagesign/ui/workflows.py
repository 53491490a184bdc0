"""Shared signing and verification workflows.

UI-agnostic orchestration of per-package operations. The CLI is a thin
wrapper around these functions and the batch runner.

Constraints:
- No stdout/stderr output (no print)
- No sys.exit()
- No argparse imports
- Returns structured results, never raises on business errors
"""

from __future__ import annotations

__all__ = [
    "ExitCode",
    "Outcome",
    "PackageOutcome",
    "WorkflowContext",
    "sign_composite_package",
    "sign_package",
    "verify_package",
]

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..constants import EMBEDDED_DOCUMENT_PATH
from ..core.classifier import SigningState, classify
from ..core.converter import from_signable, inject_manifest, strip_signature, to_signable
from ..core.files import (
    atomic_copy,
    atomic_write,
    create_archive,
    extract_archive,
    scratch_directory,
)
from ..core.package import Package
from ..errors import (
    EmbeddedDocumentMissingError,
    PackageSignError,
    SignatureResolutionError,
    VerificationEngineError,
)

if TYPE_CHECKING:
    from asn1crypto import x509 as asn1_x509

    from ..config.credentials import CredentialSet
    from ..core.engine import SigningEngine
    from ..core.keys import SignatureInfo
    from ..network.document_signer import SignerSession
    from ..network.key_vault import KeyService

_logger = logging.getLogger(__name__)


# ── Result types ──────────────────────────────────────────────────


class Outcome(enum.Enum):
    """Per-package result."""

    OK = "ok"
    FAIL = "fail"
    UNEXPECTED_EXCEPTION = "unexpected-exception"


class ExitCode(enum.IntEnum):
    """Process exit codes."""

    UNEXPECTED_EXCEPTION = -1
    OK = 0
    FAIL = 1
    INVALID_PLATFORM = 2
    INVALID_FILE_TYPE = 3


@dataclass(frozen=True, slots=True)
class PackageOutcome:
    """Result of processing one package."""

    package: Path
    outcome: Outcome
    output_path: Path | None = None
    state: SigningState | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


@dataclass(frozen=True, slots=True)
class WorkflowContext:
    """Collaborators shared by every package of one invocation.

    Args:
        credentials: Resolved credential set.
        key_service: Turns credentials into a certificate and signing key.
        engine: Signs and verifies containers.
        on_verification_error: What to do when checking an existing
            signature errors while signing: ``"abort"`` fails the package,
            ``"sign"`` treats it as unsigned and signs anyway.
    """

    credentials: CredentialSet
    key_service: KeyService
    engine: SigningEngine
    on_verification_error: str = "abort"


# ── Error classification ──────────────────────────────────────────


def _classify_error(package: Path, error: Exception) -> PackageOutcome:
    """Convert a caught exception into a PackageOutcome."""
    if isinstance(error, PackageSignError):
        _logger.error("%s: %s", package.name, error)
        return PackageOutcome(package, Outcome.FAIL, message=str(error))

    _logger.exception("%s: unexpected error", package.name)
    return PackageOutcome(
        package,
        Outcome.UNEXPECTED_EXCEPTION,
        message="An unexpected error occurred. Check logs for details.",
    )


class _SignatureResolver:
    """Resolve SignatureInfo at most once per workflow invocation.

    A failed resolution is remembered and re-raised on later calls.
    """

    def __init__(self, context: WorkflowContext) -> None:
        self._context = context
        self._info: SignatureInfo | None = None
        self._error: SignatureResolutionError | None = None

    def get(self) -> SignatureInfo:
        if self._error is not None:
            raise self._error
        if self._info is None:
            try:
                self._info = self._context.key_service.resolve(self._context.credentials)
            except SignatureResolutionError as e:
                self._error = e
                raise
        return self._info


def _expected_certificate(
    credentials: CredentialSet, resolver: _SignatureResolver
) -> asn1_x509.Certificate | None:
    """Certificate for a targeted check, or None when no certificate is named."""
    if not credentials.has_key_service:
        return None
    return resolver.get().certificate


def _check_state(
    package: Package,
    context: WorkflowContext,
    expected: asn1_x509.Certificate | None,
) -> SigningState:
    try:
        return classify(package, context.engine, expected, strict=True)
    except VerificationEngineError as e:
        if context.on_verification_error != "sign":
            raise
        _logger.warning(
            "%s: cannot check existing signature (%s); signing anyway", package.file_name, e
        )
        return SigningState.UNSIGNED


def _existing_signature(
    package: Package, context: WorkflowContext, resolver: _SignatureResolver
) -> SigningState:
    """Targeted classification first, then untargeted."""
    try:
        expected = _expected_certificate(context.credentials, resolver)
    except SignatureResolutionError as e:
        _logger.debug("%s: skipping targeted check: %s", package.file_name, e)
    else:
        if expected is not None:
            state = _check_state(package, context, expected)
            if state is SigningState.MATCHES_EXPECTED:
                return state

    untargeted = context.credentials.without_key_service()
    return _check_state(package, context, _expected_certificate(untargeted, resolver))


def _pass_through(package: Package, output_dir: Path, state: SigningState) -> PackageOutcome:
    """Publish an already signed package unchanged."""
    if state is SigningState.SIGNED_BY_ANY:
        _logger.warning(
            "%s is signed with a certificate that does not match the configured one; "
            "leaving it as is",
            package.file_name,
        )
    else:
        _logger.info("%s is already signed with the expected certificate", package.file_name)
    destination = output_dir / package.file_name
    if destination.resolve() != package.path.resolve():
        atomic_copy(package.path, destination)
    return PackageOutcome(package.path, Outcome.OK, output_path=destination, state=state)


def _sign_container(
    package: Package,
    output_dir: Path,
    output_name: str,
    context: WorkflowContext,
    resolver: _SignatureResolver,
) -> Path:
    """Resolve the signer, convert, sign and convert back."""
    signature_info = resolver.get()
    with scratch_directory() as scratch:
        container = to_signable(package.path, Path(scratch), package.format)
        if strip_signature(container):
            _logger.info("Replacing the existing signature on %s", package.file_name)
        inject_manifest(container)
        context.engine.sign(container, signature_info)
        return from_signable(container, output_dir, output_name)


# ── Signing workflows ────────────────────────────────────────────


def sign_package(package: Package, output_dir: Path, context: WorkflowContext) -> PackageOutcome:
    """Sign one package into ``output_dir`` unless it is already signed.

    A package signed by the configured certificate, or by any certificate,
    is copied through unchanged; the latter with a warning. Never raises --
    errors are captured in the result.
    """
    resolver = _SignatureResolver(context)
    try:
        state = _existing_signature(package, context, resolver)
        if state is not SigningState.UNSIGNED:
            return _pass_through(package, output_dir, state)
        output = _sign_container(package, output_dir, package.file_name, context, resolver)
    except Exception as e:  # noqa: BLE001 -- per-package boundary
        return _classify_error(package.path, e)
    _logger.info("Signed %s -> %s", package.file_name, output)
    return PackageOutcome(package.path, Outcome.OK, output_path=output, state=SigningState.UNSIGNED)


def _find_embedded_document(root: Path) -> Path | None:
    """Locate the embedded document, matching path components case-insensitively."""
    current = root
    for part in EMBEDDED_DOCUMENT_PATH:
        if not current.is_dir():
            return None
        matches = [child for child in current.iterdir() if child.name.lower() == part.lower()]
        if not matches:
            return None
        current = matches[0]
    return current if current.is_file() else None


def sign_composite_package(
    package: Package,
    session: SignerSession,
    output_dir: Path | None,
    context: WorkflowContext,
) -> PackageOutcome:
    """Sign the embedded document through ``session``, then sign the package.

    Without ``output_dir`` the signed package replaces the input. An already
    signed package is handled like ``sign_package`` handles it, without
    contacting the remote signer. Never raises.
    """
    target_dir = output_dir if output_dir is not None else package.path.parent
    resolver = _SignatureResolver(context)
    try:
        state = _existing_signature(package, context, resolver)
        if state is not SigningState.UNSIGNED:
            return _pass_through(package, target_dir, state)

        with scratch_directory() as scratch:
            scratch_root = Path(scratch)
            content_dir = scratch_root / "content"
            extract_archive(package.path, content_dir)
            document = _find_embedded_document(content_dir)
            if document is None:
                raise EmbeddedDocumentMissingError(
                    f"{package.file_name} does not contain {'/'.join(EMBEDDED_DOCUMENT_PATH)}"
                )
            _logger.info("Signing embedded document of %s", package.file_name)
            atomic_write(document, session.sign_document(document.read_bytes()))

            rebuilt = Package(scratch_root / package.file_name, package.format)
            create_archive(content_dir, rebuilt.path)
            output = _sign_container(rebuilt, target_dir, package.file_name, context, resolver)
    except Exception as e:  # noqa: BLE001 -- per-package boundary
        return _classify_error(package.path, e)
    _logger.info("Signed %s -> %s", package.file_name, output)
    return PackageOutcome(package.path, Outcome.OK, output_path=output, state=SigningState.UNSIGNED)


# ── Verification workflow ─────────────────────────────────────────


def verify_package(package: Package, context: WorkflowContext) -> PackageOutcome:
    """Verify one package.

    When the credentials name a certificate, only a valid signature by that
    certificate passes. Every error is reported as ``FAIL``.
    """
    resolver = _SignatureResolver(context)
    try:
        expected = _expected_certificate(context.credentials, resolver)
        state = classify(package, context.engine, expected, strict=False)
    except Exception as e:  # noqa: BLE001 -- per-package boundary
        if not isinstance(e, PackageSignError):
            _logger.exception("%s: unexpected error during verification", package.file_name)
        else:
            _logger.error("%s: %s", package.file_name, e)
        return PackageOutcome(package.path, Outcome.FAIL, message=str(e))

    if state is SigningState.UNSIGNED:
        message = (
            "not signed with the expected certificate"
            if expected is not None
            else "not signed or signature invalid"
        )
        _logger.error("%s: %s", package.file_name, message)
        return PackageOutcome(package.path, Outcome.FAIL, state=state, message=message)
    _logger.info("%s: signature valid", package.file_name)
    return PackageOutcome(package.path, Outcome.OK, state=state)
