"""
packagesign: sign and verify DataMiner application packages.

Signs .dmapp packages and .dmprotocol packages (including their embedded
protocol XML via a remote signing service) with a certificate held in
Azure Key Vault.
"""

from __future__ import annotations

from .api import sign, verify
from .config.credentials import CredentialSet
from .constants import __version__
from .core.classifier import SigningState, classify
from .core.engine import EngineVerifyResult, SigningEngine
from .core.package import Package, PackageFormat
from .errors import (
    AuthError,
    ConfigError,
    EmbeddedDocumentMissingError,
    InvalidFileTypeError,
    ManifestWriteError,
    PackageSignError,
    RemoteSignerError,
    SignatureResolutionError,
    SigningEngineError,
    TransportError,
    UnsupportedFormatError,
    VerificationEngineError,
)
from .ui.batch import BatchResult
from .ui.workflows import ExitCode, Outcome, PackageOutcome

__all__ = [
    "AuthError",
    "BatchResult",
    "ConfigError",
    "CredentialSet",
    "EmbeddedDocumentMissingError",
    "EngineVerifyResult",
    "ExitCode",
    "InvalidFileTypeError",
    "ManifestWriteError",
    "Outcome",
    "Package",
    "PackageFormat",
    "PackageOutcome",
    "PackageSignError",
    "RemoteSignerError",
    "SignatureResolutionError",
    "SigningEngine",
    "SigningEngineError",
    "SigningState",
    "TransportError",
    "UnsupportedFormatError",
    "VerificationEngineError",
    "__version__",
    "classify",
    "sign",
    "verify",
]
