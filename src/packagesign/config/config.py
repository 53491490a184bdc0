"""
Persisted settings for packagesign.

Stores non-secret defaults (vault URL, certificate name, tenant/client ids,
signer domain/username, service URLs) in ~/.packagesign/config.json.
Secrets live in ``credentials.py``.
"""

from __future__ import annotations

__all__ = [
    "get_setting",
    "get_settings",
    "reset_all",
    "save_setting",
    "unset_setting",
]

import logging

from ..errors import ConfigError
from ._storage import SECRET_KEYS, SETTING_KEYS, load_config, load_raw_config, save_config

_logger = logging.getLogger(__name__)


def _require_setting_key(key: str) -> None:
    if key in SECRET_KEYS:
        raise ConfigError(f"'{key}' is a secret; use 'config set-secret {key}' instead.")
    if key not in SETTING_KEYS:
        raise ConfigError(
            f"Unknown setting '{key}'. Known settings: {', '.join(SETTING_KEYS)}"
        )


def get_settings() -> dict[str, str]:
    """Return all saved non-secret settings."""
    config = load_config()
    return {key: config[key] for key in SETTING_KEYS if key in config}


def get_setting(key: str) -> str | None:
    """Return one saved non-secret setting, or None if unset."""
    return get_settings().get(key)


def save_setting(key: str, value: str) -> None:
    """Persist a non-secret setting.

    Raises:
        ConfigError: If the key is unknown, secret, or the value is blank.
    """
    _require_setting_key(key)
    value = value.strip()
    if not value:
        raise ConfigError(f"Value for '{key}' must not be empty.")
    config = load_raw_config()
    config[key] = value
    save_config(config)
    _logger.debug("Saved setting %s", key)


def unset_setting(key: str) -> bool:
    """Remove a non-secret setting. Returns True if something was removed."""
    _require_setting_key(key)
    config = load_raw_config()
    if config.pop(key, None) is None:
        return False
    save_config(config)
    return True


def reset_all() -> None:
    """Clear all config: settings and stored secrets."""
    from .credentials import clear_secret

    for key in SECRET_KEYS:
        clear_secret(key)
    save_config({})
