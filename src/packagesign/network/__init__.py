"""Network transport, remote document signer and key service."""

from __future__ import annotations

from .document_signer import DocumentSigner, SignerSession, SoapDocumentSigner
from .key_vault import KeyService, KeyVaultService

__all__ = [
    "DocumentSigner",
    "KeyService",
    "KeyVaultService",
    "SignerSession",
    "SoapDocumentSigner",
]
