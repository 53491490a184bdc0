"""
On-disk config file for packagesign.

``~/.packagesign/config.json`` is a flat JSON object of string values.
config.py (settings) and credentials.py (plaintext secret fallback) both
read and write it through this module.
"""

from __future__ import annotations

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE",
    "SECRET_KEYS",
    "SETTING_KEYS",
    "load_config",
    "load_raw_config",
    "save_config",
]

import json
import logging
import os
from pathlib import Path

from ..core.files import atomic_write

_logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".packagesign"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Persisted in config.json
SETTING_KEYS = (
    "azure_tenant_id",
    "azure_client_id",
    "azure_key_vault_url",
    "azure_key_vault_certificate",
    "signing_domain",
    "signing_username",
    "signing_service_url",
    "timestamp_url",
)

# Kept in the OS keyring; config.json only when no keyring backend works
SECRET_KEYS = (
    "azure_client_secret",
    "signing_password",
)


def load_raw_config() -> dict[str, object]:
    """Everything in config.json, unknown keys included. Empty when unreadable."""
    try:
        text = CONFIG_FILE.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        _logger.warning("Cannot read config file %s: %s", CONFIG_FILE, e)
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        _logger.warning("Ignoring corrupted config file %s: %s", CONFIG_FILE, e)
        return {}
    return data if isinstance(data, dict) else {}


def load_config() -> dict[str, str]:
    """Known keys only, as stripped non-empty strings."""
    raw = load_raw_config()
    config: dict[str, str] = {}
    for key in SETTING_KEYS + SECRET_KEYS:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            config[key] = value.strip()
    return config


def save_config(config: dict[str, object]) -> None:
    """Replace config.json with ``config``, readable by the owner only."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True, mode=0o700)
    if os.name != "nt":
        try:
            CONFIG_DIR.chmod(0o700)
        except OSError:
            _logger.warning("Failed to restrict permissions on %s", CONFIG_DIR)
    payload = json.dumps(config, indent=2, ensure_ascii=False) + "\n"
    atomic_write(CONFIG_FILE, payload.encode("utf-8"), mode=0o600)
    _logger.debug("Saved %d key(s) to %s", len(config), CONFIG_FILE)
