"""packagesign error types."""

from __future__ import annotations

from typing import Any

__all__ = [
    "AuthError",
    "ConfigError",
    "EmbeddedDocumentMissingError",
    "InvalidFileTypeError",
    "ManifestWriteError",
    "PackageSignError",
    "RemoteSignerError",
    "SignatureResolutionError",
    "SigningEngineError",
    "TransportError",
    "UnsupportedFormatError",
    "VerificationEngineError",
]


class PackageSignError(Exception):
    """Base error for packagesign operations."""


class ConfigError(PackageSignError):
    """Configuration or credential validation error."""


class InvalidFileTypeError(PackageSignError):
    """Input file extension does not match the command's package format."""


class UnsupportedFormatError(PackageSignError):
    """Container conversion was asked to handle the wrong file extension."""


class ManifestWriteError(PackageSignError):
    """The signable container could not be opened to add its manifest."""


class SignatureResolutionError(PackageSignError):
    """Certificate or signing key could not be obtained from the key service."""


class SigningEngineError(PackageSignError):
    """The signing engine could not produce a signed container."""


class VerificationEngineError(PackageSignError):
    """The signing engine errored while verifying, as opposed to reporting unsigned."""


class EmbeddedDocumentMissingError(PackageSignError):
    """A composite package does not contain its embedded XML document."""


class RemoteSignerError(PackageSignError):
    """The remote document signer returned an error or an unusable response."""


class AuthError(RemoteSignerError):
    """The remote document signer rejected the supplied credentials."""


class TransportError(PackageSignError):
    """HTTP/connection error.

    Args:
        message: Human-readable error description.
        retryable: Whether this error is transient and worth retrying.
            True for timeouts and connection failures;
            False for configuration issues (bad URL, refused redirect).
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable

    def __reduce__(self) -> tuple[type[TransportError], tuple[str], dict[str, bool]]:
        """Preserve retryable flag across pickle/unpickle."""
        return (type(self), (str(self),), {"retryable": self.retryable})

    def __setstate__(self, state: dict[str, Any] | None) -> None:
        if state is None:
            return
        self.retryable = state.get("retryable", False)
