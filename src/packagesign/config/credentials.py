"""
Credential management for packagesign.

Builds the per-invocation ``CredentialSet`` from CLI flags, environment
variables and persisted config. Secrets are stored via the system keychain
(keyring) when a usable backend exists, falling back to config file storage
otherwise.
"""

from __future__ import annotations

__all__ = [
    "CredentialSet",
    "clear_secret",
    "get_credential_storage_info",
    "get_secret",
    "resolve_credential_set",
    "save_secret",
]

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..constants import (
    ENV_AZURE_CLIENT_ID,
    ENV_AZURE_CLIENT_SECRET,
    ENV_AZURE_KEY_VAULT_CERTIFICATE,
    ENV_AZURE_KEY_VAULT_URL,
    ENV_AZURE_TENANT_ID,
    ENV_SIGNING_DOMAIN,
    ENV_SIGNING_PASSWORD,
    ENV_SIGNING_USERNAME,
)
from ..errors import ConfigError
from ._storage import CONFIG_FILE, SECRET_KEYS, load_config, load_raw_config, save_config

# Keyring service name for credential storage
_KEYRING_SERVICE = "packagesign"

_logger = logging.getLogger(__name__)


# ── Credential set ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class CredentialSet:
    """Everything needed to reach the key service and the remote signer.

    Empty strings mean "not supplied". Secrets are kept out of ``repr``.
    """

    azure_tenant_id: str = ""
    azure_client_id: str = ""
    azure_client_secret: str = field(default="", repr=False)
    azure_key_vault_url: str = ""
    azure_key_vault_certificate: str = ""
    signing_domain: str = ""
    signing_username: str = ""
    signing_password: str = field(default="", repr=False)

    @property
    def has_key_service(self) -> bool:
        """True when a certificate in a key vault is named."""
        return bool(self.azure_key_vault_url and self.azure_key_vault_certificate)

    @property
    def has_document_signer(self) -> bool:
        return bool(self.signing_username and self.signing_password)

    def without_key_service(self) -> CredentialSet:
        """Projection with the vault URL and certificate name cleared."""
        return replace(self, azure_key_vault_url="", azure_key_vault_certificate="")

    def require_key_service(self) -> None:
        """Raise ConfigError naming every missing key-service field."""
        missing = [
            name
            for name, value in (
                ("azure_tenant_id", self.azure_tenant_id),
                ("azure_client_id", self.azure_client_id),
                ("azure_client_secret", self.azure_client_secret),
                ("azure_key_vault_url", self.azure_key_vault_url),
                ("azure_key_vault_certificate", self.azure_key_vault_certificate),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing key service credentials: {', '.join(missing)}")


# Field name -> environment variable
_ENV_NAMES = {
    "azure_tenant_id": ENV_AZURE_TENANT_ID,
    "azure_client_id": ENV_AZURE_CLIENT_ID,
    "azure_client_secret": ENV_AZURE_CLIENT_SECRET,
    "azure_key_vault_url": ENV_AZURE_KEY_VAULT_URL,
    "azure_key_vault_certificate": ENV_AZURE_KEY_VAULT_CERTIFICATE,
    "signing_domain": ENV_SIGNING_DOMAIN,
    "signing_username": ENV_SIGNING_USERNAME,
    "signing_password": ENV_SIGNING_PASSWORD,
}


def resolve_credential_set(
    overrides: Mapping[str, str | None] | None = None,
    environ: Mapping[str, str] | None = None,
) -> CredentialSet:
    """Resolve a CredentialSet field by field.

    Priority: explicit override (CLI flag) > environment variable >
    saved config / keyring. Partial merges are allowed, e.g. tenant id
    from config and client secret from the environment.

    Args:
        overrides: Values given on the command line; None or blank means unset.
        environ: Environment mapping to consult (pass ``os.environ``).
    """
    overrides = overrides or {}
    environ = environ or {}
    saved = load_config()
    values: dict[str, str] = {}
    sources: dict[str, str] = {}
    for name, env_name in _ENV_NAMES.items():
        value = (overrides.get(name) or "").strip()
        source = "flag"
        if not value:
            value = environ.get(env_name, "").strip()
            source = "env"
        if not value:
            if name in SECRET_KEYS:
                value = get_secret(name) or ""
            else:
                value = saved.get(name, "")
            source = "config"
        if value:
            values[name] = value
            sources[name] = source
    _logger.debug("Credential sources: %s", sources)
    return CredentialSet(**values)


# ── Secret storage ──────────────────────────────────────────────────


def _require_secret_key(key: str) -> None:
    if key not in SECRET_KEYS:
        raise ConfigError(f"Unknown secret '{key}'. Known secrets: {', '.join(SECRET_KEYS)}")


def get_secret(key: str) -> str | None:
    """Read a secret from the keyring, then from the plaintext config fallback."""
    _require_secret_key(key)
    try:
        value = keyring.get_password(_KEYRING_SERVICE, key)
    except KeyringError as e:
        _logger.debug("Keyring read failed for %s: %s", key, e)
        value = None
    if value:
        return value
    fallback = load_config().get(key)
    return fallback or None


def save_secret(key: str, value: str) -> bool:
    """Persist a secret.

    Returns:
        True if stored in the system keychain, False if it fell back to
        plaintext storage in config.json.
    """
    _require_secret_key(key)
    if not value:
        raise ConfigError(f"Value for '{key}' must not be empty.")
    try:
        keyring.set_password(_KEYRING_SERVICE, key, value)
    except KeyringError as e:
        _logger.warning(
            "No usable keyring backend (%s); storing %s in %s as plaintext.",
            e,
            key,
            CONFIG_FILE,
        )
        config = load_raw_config()
        config[key] = value
        save_config(config)
        return False
    # Drop any stale plaintext copy
    config = load_raw_config()
    if config.pop(key, None) is not None:
        save_config(config)
    return True


def clear_secret(key: str) -> None:
    """Remove a secret from both the keychain and the config fallback."""
    _require_secret_key(key)
    try:
        keyring.delete_password(_KEYRING_SERVICE, key)
        _logger.debug("Deleted keyring entry %s", key)
    except PasswordDeleteError:
        pass  # nothing stored
    except KeyringError as e:
        _logger.debug("Keyring delete failed for %s: %s", key, e)
    config = load_raw_config()
    if config.pop(key, None) is not None:
        save_config(config)


def get_credential_storage_info() -> str:
    """Return human-readable description of where secrets are stored."""
    backend = keyring.get_keyring()
    module = type(backend).__module__ or ""
    if "fail" in module or "null" in module:
        return f"{CONFIG_FILE} (plaintext)"
    if "macOS" in module:
        return "macOS Keychain"
    if "Windows" in module or "WinVault" in module:
        return "Windows Credential Manager"
    if "SecretService" in module:
        return "Linux Secret Service"
    if "KWallet" in module:
        return "KDE Wallet"
    return f"System keychain ({type(backend).__name__})"
