"""
Common CLI helper functions for packagesign.
"""

from __future__ import annotations

import getpass
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from asn1crypto import pem as asn1_pem
from asn1crypto import x509 as asn1_x509

from ..constants import SUPPORTED_PLATFORMS
from ..errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .batch import BatchResult

__all__ = [
    "configure_logging",
    "is_supported_platform",
    "load_trusted_certificates",
    "pick_setting",
    "print_batch_summary",
    "read_secret",
]

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level_name: str = "INFO", debug: bool = False) -> None:
    """Configure the root logger once for the whole process.

    Raises:
        ConfigError: If ``level_name`` is not a logging level.
    """
    level = logging.DEBUG if debug else logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {level_name}")
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def is_supported_platform(platform: str | None = None) -> bool:
    """True when sign/verify may run on ``platform`` (default: this one)."""
    return (platform or sys.platform) in SUPPORTED_PLATFORMS


def pick_setting(
    flag_value: str | None,
    environ: Mapping[str, str],
    env_name: str,
    saved: Mapping[str, str],
    key: str,
    default: str,
) -> str:
    """First non-empty of: flag, environment variable, saved setting, default."""
    for value in (flag_value, environ.get(env_name), saved.get(key)):
        if value and value.strip():
            return value.strip()
    return default


def read_secret(prompt: str) -> str | None:
    """Prompt for a secret without echo. Returns None on EOF/Ctrl-C."""
    try:
        value = getpass.getpass(prompt)
    except (EOFError, KeyboardInterrupt):
        print()
        return None
    return value.strip() or None


def load_trusted_certificates(path: Path) -> list[asn1_x509.Certificate]:
    """
    Load one DER certificate or a bundle of PEM certificates.

    Raises:
        ConfigError: If the file cannot be read or holds no certificate.
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ConfigError(f"Cannot read trusted certificates {path}: {e}") from e
    try:
        if asn1_pem.detect(data):
            certs = [
                asn1_x509.Certificate.load(der)
                for kind, _, der in asn1_pem.unarmor(data, multiple=True)
                if kind == "CERTIFICATE"
            ]
        else:
            certs = [asn1_x509.Certificate.load(data)]
        for cert in certs:
            cert.native  # noqa: B018 -- force full parse
    except (ValueError, TypeError) as e:
        raise ConfigError(f"Invalid certificate data in {path}: {e}") from e
    if not certs:
        raise ConfigError(f"No certificates found in {path}")
    return certs


def print_batch_summary(result: BatchResult, verb: str, past: str) -> None:
    """Print one line per package and a final tally to stdout."""
    if result.aborted is not None:
        print(f"Error: {result.message}", file=sys.stderr)
        return
    for outcome in result.outcomes:
        status = "OK" if outcome.ok else outcome.outcome.value.upper()
        line = f"  {status:<6} {outcome.package.name}"
        if outcome.output_path is not None and outcome.ok:
            line += f" -> {outcome.output_path}"
        elif outcome.message:
            line += f": {outcome.message}"
        print(line)
    total = len(result.outcomes)
    failed = len(result.failed)
    if total == 0:
        print(f"No packages to {verb}.")
    elif failed:
        print(f"\n{failed} of {total} package(s) failed to {verb}.")
    else:
        print(f"\nAll {total} package(s) {past}.")
