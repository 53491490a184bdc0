# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""
CMS SignedData for package signatures.

Builds an attached-content SignedData (RFC 5652) with SHA-256 / RSA and
checks signatures produced by it, including embedded RFC 3161 tokens.
"""

from __future__ import annotations

__all__ = [
    "build_signed_data",
    "find_signer_certificate",
    "load_signed_data",
    "signing_time",
    "timestamp_token",
    "verify_signer_info",
]

import datetime
import hashlib
import logging
from typing import TYPE_CHECKING

from asn1crypto import algos, cms, core
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

if TYPE_CHECKING:
    from ..keys import SignatureInfo
    from .timestamp import Timestamper

_logger = logging.getLogger(__name__)

_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "sha1": hashes.SHA1,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def _attribute(name: str, value: object) -> cms.CMSAttribute:
    return cms.CMSAttribute({"type": cms.CMSAttributeType(name), "values": (value,)})


def _find_attribute(attrs: cms.CMSAttributes | None, name: str) -> object | None:
    if not attrs:
        return None
    for attr in attrs:
        if attr["type"].native == name:
            return attr["values"][0]
    return None


# ── Building ─────────────────────────────────────────────────────────


def build_signed_data(
    content: bytes,
    signature_info: SignatureInfo,
    *,
    signing_time: datetime.datetime,
    timestamper: Timestamper | None = None,
) -> bytes:
    """
    Sign ``content`` and return the DER-encoded ContentInfo.

    The signing key signs the SHA-256 digest of the DER-encoded signed
    attributes. When a timestamper is given, the signature value is
    countersigned and the token stored as an unsigned attribute.
    """
    certificate = signature_info.certificate
    signed_attrs = cms.CMSAttributes(
        [
            _attribute("content_type", cms.ContentType("data")),
            _attribute("signing_time", cms.Time({"utc_time": core.UTCTime(signing_time)})),
            _attribute("message_digest", hashlib.sha256(content).digest()),
        ]
    )
    signature = signature_info.key.sign_digest(hashlib.sha256(signed_attrs.dump()).digest())

    signer_info = cms.SignerInfo(
        {
            "version": "v1",
            "sid": cms.SignerIdentifier(
                {
                    "issuer_and_serial_number": cms.IssuerAndSerialNumber(
                        {
                            "issuer": certificate.issuer,
                            "serial_number": certificate.serial_number,
                        }
                    )
                }
            ),
            "digest_algorithm": algos.DigestAlgorithm({"algorithm": "sha256"}),
            "signature_algorithm": algos.SignedDigestAlgorithm({"algorithm": "sha256_rsa"}),
            "signed_attrs": signed_attrs,
            "signature": signature,
        }
    )
    if timestamper is not None:
        token = timestamper.timestamp(hashlib.sha256(signature).digest())
        signer_info["unsigned_attrs"] = cms.CMSAttributes(
            [_attribute("signature_time_stamp_token", token)]
        )

    signed_data = cms.SignedData(
        {
            "version": "v1",
            "digest_algorithms": cms.DigestAlgorithms(
                [algos.DigestAlgorithm({"algorithm": "sha256"})]
            ),
            "encap_content_info": {"content_type": "data", "content": content},
            "certificates": [cms.CertificateChoices(name="certificate", value=certificate)],
            "signer_infos": [signer_info],
        }
    )
    return cms.ContentInfo({"content_type": "signed_data", "content": signed_data}).dump()


# ── Parsing and checking ─────────────────────────────────────────────


def load_signed_data(der: bytes) -> cms.SignedData:
    """
    Parse a DER ContentInfo and return its SignedData.

    Raises:
        ValueError: If the blob is not a CMS SignedData with one signer.
    """
    try:
        content_info = cms.ContentInfo.load(der)
        if content_info["content_type"].native != "signed_data":
            raise ValueError(f"unexpected content type {content_info['content_type'].native}")
        signed_data = content_info["content"]
        signer_count = len(signed_data["signer_infos"])
    except (TypeError, KeyError) as e:
        raise ValueError(f"Failed to parse CMS blob: {e}") from e
    if signer_count != 1:
        raise ValueError(f"expected exactly one signer, found {signer_count}")
    return signed_data


def find_signer_certificate(
    signed_data: cms.SignedData, signer_info: cms.SignerInfo
) -> asn1_x509.Certificate | None:
    """Pick the certificate the signer identifier points at."""
    sid = signer_info["sid"]
    for choice in signed_data["certificates"] or []:
        if choice.name != "certificate":
            continue
        cert = choice.chosen
        if sid.name == "issuer_and_serial_number":
            ias = sid.chosen
            if cert.issuer == ias["issuer"] and cert.serial_number == ias["serial_number"].native:
                return cert
        elif sid.name == "subject_key_identifier":
            if cert.key_identifier == sid.chosen.native:
                return cert
    return None


def verify_signer_info(
    signer_info: cms.SignerInfo, certificate: asn1_x509.Certificate, content: bytes
) -> list[str]:
    """
    Check a SignerInfo against its certificate and the encapsulated content.

    Returns:
        Human-readable problems; an empty list means the signature holds.
    """
    digest_name = signer_info["digest_algorithm"]["algorithm"].native
    hash_cls = _HASHES.get(digest_name)
    if hash_cls is None:
        return [f"Unsupported digest algorithm: {digest_name}"]

    signed_attrs = signer_info["signed_attrs"]
    if not signed_attrs:
        return ["Signature has no signed attributes"]
    expected_digest = _find_attribute(signed_attrs, "message_digest")
    if expected_digest is None:
        return ["Signature has no message digest attribute"]
    actual_digest = hashlib.new(digest_name, content).digest()
    if expected_digest.native != actual_digest:
        return ["Message digest does not match the signed content"]

    # Signed attributes are signed as a SET OF, not with their [0] tag
    signed_bytes = b"\x31" + signed_attrs.dump()[1:]
    signature = signer_info["signature"].native
    public_key = x509.load_der_x509_certificate(certificate.dump()).public_key()
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, signed_bytes, padding.PKCS1v15(), hash_cls())
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, signed_bytes, ec.ECDSA(hash_cls()))
        else:
            return [f"Unsupported public key type: {type(public_key).__name__}"]
    except InvalidSignature:
        return ["Signature value does not verify against the signer certificate"]
    return []


def signing_time(signer_info: cms.SignerInfo) -> datetime.datetime | None:
    """Signer-asserted signing time, if present."""
    value = _find_attribute(signer_info["signed_attrs"], "signing_time")
    return value.native if value is not None else None


def timestamp_token(signer_info: cms.SignerInfo) -> cms.ContentInfo | None:
    """Embedded RFC 3161 token, if present."""
    return _find_attribute(signer_info["unsigned_attrs"], "signature_time_stamp_token")
