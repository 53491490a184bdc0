"""
Package signing engine.

Signs a signable container by appending a CMS author signature entry and
verifies such containers. The engine works on one container at a time and
knows nothing of outer package formats.
"""

from __future__ import annotations

__all__ = ["EngineVerifyResult", "SigningEngine"]

import datetime
import hashlib
import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.exceptions import InvalidSignature

from ...constants import SIGNATURE_ENTRY
from ...errors import PackageSignError, SigningEngineError, VerificationEngineError
from ..files import archive_prefix_length
from ..keys import certificate_fingerprint
from .cms import (
    build_signed_data,
    find_signer_certificate,
    load_signed_data,
    signing_time,
    timestamp_token,
    verify_signer_info,
)
from .content import build_signature_content, compute_package_hash, parse_signature_content
from .timestamp import tst_info

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from asn1crypto import cms

    from ..keys import SignatureInfo
    from .timestamp import Timestamper

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EngineVerifyResult:
    """Outcome of checking one container.

    ``is_signed`` is true whenever a signature entry is present, even if it
    turns out to be broken; ``is_valid`` only when every check passed.
    """

    is_signed: bool
    is_valid: bool
    signer_fingerprint: str | None = None
    signer_subject: str | None = None
    signed_at: datetime.datetime | None = None
    timestamped: bool = False
    issues: tuple[str, ...] = field(default=())


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class SigningEngine:
    """Sign and verify ``.nupkg`` style containers.

    Args:
        timestamper: Authority used to countersign new signatures, or None
            to sign without a trusted timestamp.
        trusted_certificates: Anchors for verification. When non-empty the
            signer must be one of them or be issued directly by one.
    """

    def __init__(
        self,
        timestamper: Timestamper | None = None,
        trusted_certificates: Sequence[asn1_x509.Certificate] = (),
    ) -> None:
        self.timestamper = timestamper
        self.trusted_certificates = tuple(trusted_certificates)

    # ── Signing ──────────────────────────────────────────────────────

    def sign(self, container: Path, signature_info: SignatureInfo) -> Path:
        """
        Add an author signature to ``container`` in place.

        The signed archive is assembled next to the container and swapped
        in with an atomic rename, so a failure leaves the container as it was.

        Raises:
            SigningEngineError: If the container is unreadable, already
                signed, or the key service / timestamp authority fails.
        """
        _logger.info("Signing %s as %s", container.name, signature_info.subject)
        try:
            with zipfile.ZipFile(container) as archive:
                if archive_prefix_length(archive):
                    raise SigningEngineError(f"{container.name} has data in front of the archive")
                if SIGNATURE_ENTRY in archive.namelist():
                    raise SigningEngineError(f"{container.name} is already signed")
                package_hash = compute_package_hash(archive)
        except (zipfile.BadZipFile, OSError) as e:
            raise SigningEngineError(f"Cannot read {container.name}: {e}") from e

        content = build_signature_content(package_hash)
        try:
            signature_der = build_signed_data(
                content, signature_info, signing_time=_now(), timestamper=self.timestamper
            )
        except SigningEngineError:
            raise
        except PackageSignError as e:
            raise SigningEngineError(f"Signing {container.name} failed: {e}") from e

        fd, tmp_name = tempfile.mkstemp(dir=container.parent, suffix=".tmp")
        os.close(fd)
        tmp = Path(tmp_name)
        try:
            shutil.copyfile(container, tmp)
            with zipfile.ZipFile(tmp, "a") as archive:
                archive.writestr(
                    zipfile.ZipInfo(SIGNATURE_ENTRY, date_time=_now().timetuple()[:6]),
                    signature_der,
                    compress_type=zipfile.ZIP_STORED,
                )
            tmp.replace(container)
        except (zipfile.BadZipFile, OSError) as e:
            raise SigningEngineError(f"Cannot write signature into {container.name}: {e}") from e
        finally:
            tmp.unlink(missing_ok=True)
        _logger.debug("Signature entry written: %d bytes", len(signature_der))
        return container

    # ── Verification ─────────────────────────────────────────────────

    def verify(
        self, container: Path, allowed_fingerprints: Collection[str] | None = None
    ) -> EngineVerifyResult:
        """
        Check the author signature of ``container``.

        Args:
            container: Container to check.
            allowed_fingerprints: SHA-256 certificate fingerprints the signer
                must match; None accepts any signer.

        Raises:
            VerificationEngineError: If the container cannot be read at all.
        """
        try:
            with zipfile.ZipFile(container) as archive:
                if archive_prefix_length(archive):
                    raise VerificationEngineError(
                        f"{container.name} has data in front of the archive"
                    )
                if SIGNATURE_ENTRY not in archive.namelist():
                    _logger.debug("%s carries no signature", container.name)
                    return EngineVerifyResult(is_signed=False, is_valid=False)
                signature_der = archive.read(SIGNATURE_ENTRY)
                package_hash = compute_package_hash(archive)
        except (zipfile.BadZipFile, OSError) as e:
            raise VerificationEngineError(f"Cannot read {container.name}: {e}") from e

        result = self._check_signature(signature_der, package_hash, allowed_fingerprints)
        for issue in result.issues:
            _logger.debug("%s: %s", container.name, issue)
        return result

    def _check_signature(
        self,
        signature_der: bytes,
        package_hash: bytes,
        allowed_fingerprints: Collection[str] | None,
    ) -> EngineVerifyResult:
        def broken(*issues: str, **extra: Any) -> EngineVerifyResult:
            return EngineVerifyResult(is_signed=True, is_valid=False, issues=issues, **extra)

        # ── 1. Structure ─────────────────────────────────────────────
        try:
            signed_data = load_signed_data(signature_der)
            signer_info = signed_data["signer_infos"][0]
            content = signed_data["encap_content_info"]["content"].native
            signer = find_signer_certificate(signed_data, signer_info)
        except (ValueError, TypeError, KeyError, IndexError) as e:
            return broken(f"Malformed signature: {e}")
        if signer is None:
            return broken("Signer certificate is not embedded in the signature")
        fingerprint = certificate_fingerprint(signer)
        identity: dict[str, Any] = {
            "signer_fingerprint": fingerprint,
            "signer_subject": signer.subject.human_friendly,
        }
        if not isinstance(content, bytes):
            return broken("Signature has no attached content", **identity)

        # ── 2. Cryptographic signature ───────────────────────────────
        try:
            issues = verify_signer_info(signer_info, signer, content)
        except (ValueError, TypeError) as e:
            issues = [f"Cannot check signature value: {e}"]
        if issues:
            return broken(*issues, **identity)

        # ── 3. Package integrity ─────────────────────────────────────
        try:
            signed_hash = parse_signature_content(content)
        except ValueError as e:
            return broken(f"Unrecognised signature content: {e}", **identity)
        if signed_hash != package_hash:
            return broken("Package contents changed after signing", **identity)

        # ── 4. Signing time and certificate validity ─────────────────
        signed_at, timestamp_issues = self._signing_time(signer_info)
        timestamped = not timestamp_issues and timestamp_token(signer_info) is not None
        identity.update(signed_at=signed_at, timestamped=timestamped)
        if timestamp_issues:
            return broken(*timestamp_issues, **identity)
        if signed_at is None:
            return broken("Signature carries no signing time", **identity)
        if not signer.not_valid_before <= signed_at <= signer.not_valid_after:
            return broken("Signer certificate was not valid at signing time", **identity)

        # ── 5. Signer policy ─────────────────────────────────────────
        if allowed_fingerprints is not None and fingerprint not in {
            fp.upper() for fp in allowed_fingerprints
        }:
            return broken("Signer certificate is not on the allow-list", **identity)
        if self.trusted_certificates and not self._is_trusted(signer):
            return broken("Signer certificate does not chain to a trusted certificate", **identity)

        return EngineVerifyResult(is_signed=True, is_valid=True, **identity)

    def _signing_time(
        self, signer_info: cms.SignerInfo
    ) -> tuple[datetime.datetime | None, list[str]]:
        """Trusted time from the timestamp token, else the signer's claim."""
        token = timestamp_token(signer_info)
        if token is None:
            return signing_time(signer_info), []
        try:
            tsa_data = token["content"]
            tsa_signer_info = tsa_data["signer_infos"][0]
            tsa_cert = find_signer_certificate(tsa_data, tsa_signer_info)
            info = tst_info(token)
            tst_bytes = tsa_data["encap_content_info"]["content"].contents
        except (ValueError, TypeError, KeyError, IndexError) as e:
            return None, [f"Malformed timestamp token: {e}"]
        if tsa_cert is None:
            return None, ["Timestamp token does not embed the authority certificate"]
        try:
            issues = verify_signer_info(tsa_signer_info, tsa_cert, tst_bytes)
        except (ValueError, TypeError) as e:
            issues = [f"cannot check signature value: {e}"]
        if issues:
            return None, [f"Timestamp token: {issue}" for issue in issues]

        imprint = info["message_imprint"]
        hash_name = imprint["hash_algorithm"]["algorithm"].native
        signature_value = signer_info["signature"].native
        if hashlib.new(hash_name, signature_value).digest() != imprint["hashed_message"].native:
            return None, ["Timestamp token does not cover this signature"]
        return info["gen_time"].native, []

    def _is_trusted(self, signer: asn1_x509.Certificate) -> bool:
        signer_der = signer.dump()
        signer_crypto = x509.load_der_x509_certificate(signer_der)
        for anchor in self.trusted_certificates:
            if anchor.dump() == signer_der:
                return True
            try:
                signer_crypto.verify_directly_issued_by(
                    x509.load_der_x509_certificate(anchor.dump())
                )
            except (ValueError, TypeError, InvalidSignature):
                continue
            return True
        return False
