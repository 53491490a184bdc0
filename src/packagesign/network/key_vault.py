"""
Azure Key Vault key service.

Resolves a named certificate into a ``SignatureInfo``: the X.509
certificate plus a signing-key handle whose private key never leaves
the vault.
"""

from __future__ import annotations

__all__ = ["KeyService", "KeyVaultService", "KeyVaultSigningKey"]

import datetime
import logging
from typing import TYPE_CHECKING, Protocol

from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential
from azure.keyvault.certificates import CertificateClient
from azure.keyvault.keys.crypto import CryptographyClient, SignatureAlgorithm

from ..core.keys import SignatureInfo, check_validity, load_certificate
from ..errors import ConfigError, SignatureResolutionError, SigningEngineError

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

    from ..config.credentials import CredentialSet

_logger = logging.getLogger(__name__)


class KeyService(Protocol):
    """Anything that turns a credential set into a SignatureInfo."""

    def resolve(self, credentials: CredentialSet) -> SignatureInfo:
        """
        Raises:
            SignatureResolutionError: If the certificate or key cannot be
                obtained, or the certificate is outside its validity window.
        """
        ...


class KeyVaultSigningKey:
    """SigningKey that asks Key Vault to sign SHA-256 digests with RS256."""

    def __init__(self, key_id: str, credential: TokenCredential) -> None:
        self.key_id = key_id
        self._client = CryptographyClient(key_id, credential)

    def sign_digest(self, digest: bytes) -> bytes:
        _logger.debug("Signing %d-byte digest with %s", len(digest), self.key_id)
        try:
            result = self._client.sign(SignatureAlgorithm.rs256, digest)
        except AzureError as e:
            raise SigningEngineError(f"Key Vault refused to sign: {e}") from e
        return result.signature


class KeyVaultService:
    """KeyService backed by Azure Key Vault certificates."""

    def resolve(self, credentials: CredentialSet) -> SignatureInfo:
        try:
            credentials.require_key_service()
        except ConfigError as e:
            raise SignatureResolutionError(str(e)) from e

        name = credentials.azure_key_vault_certificate
        vault_url = credentials.azure_key_vault_url
        _logger.info("Fetching certificate %s from %s", name, vault_url)
        try:
            credential = ClientSecretCredential(
                tenant_id=credentials.azure_tenant_id,
                client_id=credentials.azure_client_id,
                client_secret=credentials.azure_client_secret,
            )
            vault_certificate = CertificateClient(vault_url, credential).get_certificate(name)
        except (AzureError, ValueError) as e:
            raise SignatureResolutionError(
                f"Could not retrieve certificate '{name}' from {vault_url}: {e}"
            ) from e

        if not vault_certificate.cer:
            raise SignatureResolutionError(f"Certificate '{name}' has no public certificate data.")
        if not vault_certificate.key_id:
            raise SignatureResolutionError(f"Certificate '{name}' has no associated key.")

        certificate = load_certificate(bytes(vault_certificate.cer))
        check_validity(certificate, datetime.datetime.now(datetime.timezone.utc))
        _logger.debug(
            "Resolved certificate %s (valid until %s)",
            certificate.subject.human_friendly,
            certificate.not_valid_after,
        )
        return SignatureInfo(
            certificate=certificate,
            key=KeyVaultSigningKey(vault_certificate.key_id, credential),
        )
