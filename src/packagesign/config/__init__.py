"""
Configuration and credential management.

Unified API for all config-related functionality. Instead of importing
from individual submodules (config, credentials), import from this
package directly.
"""

from __future__ import annotations

from ._storage import CONFIG_FILE, SECRET_KEYS, SETTING_KEYS

# Persisted settings
from .config import (
    get_setting,
    get_settings,
    reset_all,
    save_setting,
    unset_setting,
)

# Credentials management
from .credentials import (
    CredentialSet,
    clear_secret,
    get_credential_storage_info,
    get_secret,
    resolve_credential_set,
    save_secret,
)

__all__ = [
    "CONFIG_FILE",
    "SECRET_KEYS",
    "SETTING_KEYS",
    "CredentialSet",
    "clear_secret",
    "get_credential_storage_info",
    "get_secret",
    "get_setting",
    "get_settings",
    "reset_all",
    "resolve_credential_set",
    "save_secret",
    "save_setting",
    "unset_setting",
]
