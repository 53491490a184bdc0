"""
Signing state classification.

Decides whether a package already carries a valid signature, optionally
by one specific certificate, so the sign workflow can skip re-signing.
"""

from __future__ import annotations

__all__ = ["SigningState", "classify"]

import enum
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import PackageSignError, VerificationEngineError
from .converter import to_signable
from .files import scratch_directory
from .keys import certificate_fingerprint

if TYPE_CHECKING:
    from asn1crypto import x509 as asn1_x509

    from .engine import SigningEngine
    from .package import Package

_logger = logging.getLogger(__name__)


class SigningState(enum.Enum):
    """Signing state of a package, as seen by one classification."""

    MATCHES_EXPECTED = "matches-expected"
    SIGNED_BY_ANY = "signed-by-any"
    UNSIGNED = "unsigned"


def classify(
    package: Package,
    engine: SigningEngine,
    expected_certificate: asn1_x509.Certificate | None = None,
    *,
    strict: bool = True,
) -> SigningState:
    """
    Classify ``package``.

    With ``expected_certificate`` the check is targeted: only a valid
    signature by that certificate counts (``MATCHES_EXPECTED``). Without it
    any valid signature counts (``SIGNED_BY_ANY``). Everything else is
    ``UNSIGNED``, except that a strict untargeted check raises on a present
    but invalid signature.

    Args:
        package: Package to inspect; never modified.
        engine: Engine that performs the actual verification.
        expected_certificate: Certificate for a targeted check.
        strict: Raise on engine or I/O errors instead of reporting
            ``UNSIGNED``.

    Raises:
        VerificationEngineError: When ``strict`` and the check itself failed, or
            when ``strict``, untargeted and the existing signature is invalid.
    """
    allowed = None
    if expected_certificate is not None:
        allowed = [certificate_fingerprint(expected_certificate)]

    try:
        with scratch_directory() as scratch:
            container = to_signable(package.path, Path(scratch), package.format)
            result = engine.verify(container, allowed_fingerprints=allowed)
    except (PackageSignError, OSError) as e:
        if strict:
            if isinstance(e, VerificationEngineError):
                raise
            raise VerificationEngineError(f"{package.file_name}: {e}") from e
        _logger.warning("%s: verification failed, treating as unsigned: %s", package.file_name, e)
        return SigningState.UNSIGNED

    if strict and allowed is None and result.is_signed and not result.is_valid:
        raise VerificationEngineError(
            f"{package.file_name}: existing signature is invalid: {'; '.join(result.issues)}"
        )
    if not (result.is_signed and result.is_valid):
        return SigningState.UNSIGNED
    if allowed is not None:
        return SigningState.MATCHES_EXPECTED
    return SigningState.SIGNED_BY_ANY
