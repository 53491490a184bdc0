"""
Package integrity hash and the signed content that carries it.

The hash covers every zip entry except the signature entry, in archive
order: for each entry, its UTF-8 name and its uncompressed data, each
prefixed with a big-endian length.
"""

from __future__ import annotations

__all__ = [
    "HASH_ALGORITHM_OID",
    "build_signature_content",
    "compute_package_hash",
    "parse_signature_content",
]

import base64
import binascii
import hashlib
import zipfile

from ...constants import RECV_BUFFER_SIZE, SIGNATURE_ENTRY

# id-sha256
HASH_ALGORITHM_OID = "2.16.840.1.101.3.4.2.1"

_VERSION_LINE = "Version:1"


def compute_package_hash(archive: zipfile.ZipFile) -> bytes:
    """SHA-256 over all entries of ``archive`` except the signature entry."""
    digest = hashlib.sha256()
    for info in archive.infolist():
        if info.filename == SIGNATURE_ENTRY:
            continue
        name = info.filename.encode("utf-8")
        digest.update(len(name).to_bytes(4, "big"))
        digest.update(name)
        digest.update(info.file_size.to_bytes(8, "big"))
        with archive.open(info) as entry:
            while True:
                chunk = entry.read(RECV_BUFFER_SIZE)
                if not chunk:
                    break
                digest.update(chunk)
    return digest.digest()


def build_signature_content(package_hash: bytes) -> bytes:
    """Render the signed content for a package hash."""
    hash_b64 = base64.b64encode(package_hash).decode("ascii")
    return f"{_VERSION_LINE}\r\n\r\n{HASH_ALGORITHM_OID}-Hash:{hash_b64}\r\n\r\n".encode("ascii")


def parse_signature_content(content: bytes) -> bytes:
    """Extract the package hash from signed content.

    Raises:
        ValueError: If the content is not in the expected format.
    """
    try:
        text = content.decode("ascii")
    except UnicodeDecodeError as e:
        raise ValueError("Signature content is not ASCII") from e
    lines = [line for line in text.split("\r\n") if line]
    if not lines or lines[0] != _VERSION_LINE:
        raise ValueError("Unsupported signature content version")
    prefix = f"{HASH_ALGORITHM_OID}-Hash:"
    for line in lines[1:]:
        if line.startswith(prefix):
            try:
                return base64.b64decode(line[len(prefix) :], validate=True)
            except binascii.Error as e:
                raise ValueError(f"Invalid package hash encoding: {e}") from e
    raise ValueError("Signature content carries no SHA-256 package hash")
