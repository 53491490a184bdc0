"""
Signing identities: a certificate plus a handle that can sign digests.

The key material itself may live in a remote key service; the signing
engine only ever calls ``SigningKey.sign_digest``.
"""

from __future__ import annotations

__all__ = [
    "LocalSigningKey",
    "SignatureInfo",
    "SigningKey",
    "certificate_fingerprint",
    "check_validity",
    "load_certificate",
]

import datetime
import hashlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from asn1crypto import pem as asn1_pem
from asn1crypto import x509 as asn1_x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, utils

from ..errors import SignatureResolutionError

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

_logger = logging.getLogger(__name__)


class SigningKey(Protocol):
    """Handle on a private key that signs pre-computed SHA-256 digests.

    Implementations return a raw RSA PKCS#1 v1.5 signature over the digest.
    """

    def sign_digest(self, digest: bytes) -> bytes: ...


class LocalSigningKey:
    """SigningKey backed by an in-memory ``cryptography`` RSA private key."""

    def __init__(self, private_key: RSAPrivateKey) -> None:
        self._private_key = private_key

    def sign_digest(self, digest: bytes) -> bytes:
        return self._private_key.sign(
            digest, padding.PKCS1v15(), utils.Prehashed(hashes.SHA256())
        )


def load_certificate(data: bytes) -> asn1_x509.Certificate:
    """Parse a DER or PEM encoded X.509 certificate.

    Raises:
        SignatureResolutionError: If the bytes are not a certificate.
    """
    try:
        if asn1_pem.detect(data):
            _, _, data = asn1_pem.unarmor(data)
        cert = asn1_x509.Certificate.load(data)
        cert.native  # noqa: B018 -- force full parse
    except (ValueError, TypeError) as e:
        raise SignatureResolutionError(f"Failed to parse X.509 certificate: {e}") from e
    return cert


def certificate_fingerprint(cert: asn1_x509.Certificate) -> str:
    """Upper-case hex SHA-256 over the certificate DER."""
    return hashlib.sha256(cert.dump()).hexdigest().upper()


def check_validity(
    cert: asn1_x509.Certificate, now: datetime.datetime | None = None
) -> None:
    """Check that ``now`` falls inside the certificate's validity window.

    Raises:
        SignatureResolutionError: With distinct messages for a certificate
            that is not yet valid and one that has expired.
    """
    now = now or datetime.datetime.now(datetime.timezone.utc)
    not_before = cert.not_valid_before
    not_after = cert.not_valid_after
    if now < not_before:
        raise SignatureResolutionError(
            f"Certificate is not yet time valid (notBefore: {not_before.isoformat()})"
        )
    if now > not_after:
        raise SignatureResolutionError(
            f"Certificate is expired (notAfter: {not_after.isoformat()})"
        )


@dataclass(frozen=True, slots=True)
class SignatureInfo:
    """Certificate and signing key obtained from the key service."""

    certificate: asn1_x509.Certificate
    key: SigningKey

    @property
    def fingerprint(self) -> str:
        return certificate_fingerprint(self.certificate)

    @property
    def subject(self) -> str:
        return self.certificate.subject.human_friendly
