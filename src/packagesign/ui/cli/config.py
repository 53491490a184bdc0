"""
Config command: inspect and edit persisted settings and secrets.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from ...config import (
    CONFIG_FILE,
    SECRET_KEYS,
    SETTING_KEYS,
    clear_secret,
    get_credential_storage_info,
    get_secret,
    get_settings,
    reset_all,
    save_secret,
    save_setting,
    unset_setting,
)
from ...errors import ConfigError
from ..helpers import read_secret
from ..workflows import ExitCode

if TYPE_CHECKING:
    import argparse


def add_config_parser(sub: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    p_config = sub.add_parser("config", help="Show or change saved defaults")
    actions = p_config.add_subparsers(dest="action", metavar="ACTION", required=True)

    actions.add_parser("show", help="Show saved settings and which secrets are stored")

    p_set = actions.add_parser("set", help="Save a setting")
    p_set.add_argument("key", choices=SETTING_KEYS)
    p_set.add_argument("value")

    p_secret = actions.add_parser("set-secret", help="Save a secret in the system keychain")
    p_secret.add_argument("key", choices=SECRET_KEYS)

    p_unset = actions.add_parser("unset", help="Remove a setting or secret")
    p_unset.add_argument("key", choices=SETTING_KEYS + SECRET_KEYS)

    actions.add_parser("reset", help="Remove all settings and secrets")


def _show() -> None:
    settings = get_settings()
    print(f"Config file: {CONFIG_FILE}")
    for key in SETTING_KEYS:
        print(f"  {key:<30} {settings.get(key, '-')}")
    print(f"Secrets ({get_credential_storage_info()}):")
    for key in SECRET_KEYS:
        print(f"  {key:<30} {'stored' if get_secret(key) else '-'}")


def cmd_config(args: argparse.Namespace) -> int:
    """Run a config action. Returns the exit code."""
    try:
        if args.action == "show":
            _show()
        elif args.action == "set":
            save_setting(args.key, args.value)
            print(f"Saved {args.key}.")
        elif args.action == "set-secret":
            value = read_secret(f"{args.key}: ")
            if value is None:
                print("Cancelled.")
                return ExitCode.FAIL
            if save_secret(args.key, value):
                print(f"Saved {args.key} to {get_credential_storage_info()}.")
            else:
                print(f"Saved {args.key} to {CONFIG_FILE} (plaintext).")
        elif args.action == "unset":
            if args.key in SECRET_KEYS:
                clear_secret(args.key)
                print(f"Removed {args.key}.")
            elif unset_setting(args.key):
                print(f"Removed {args.key}.")
            else:
                print(f"{args.key} was not set.")
        elif args.action == "reset":
            reset_all()
            print("All configuration cleared.")
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.FAIL
    return ExitCode.OK
