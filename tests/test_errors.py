"""Tests for packagesign.errors -- exception hierarchy."""

import pickle

import pytest

from packagesign.errors import (
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


def test_base_error_is_exception():
    assert issubclass(PackageSignError, Exception)


@pytest.mark.parametrize(
    "cls",
    [
        AuthError,
        ConfigError,
        EmbeddedDocumentMissingError,
        InvalidFileTypeError,
        ManifestWriteError,
        RemoteSignerError,
        SignatureResolutionError,
        SigningEngineError,
        TransportError,
        UnsupportedFormatError,
        VerificationEngineError,
    ],
)
def test_catch_all_with_base(cls):
    with pytest.raises(PackageSignError):
        raise cls("failure")


def test_auth_error_is_remote_signer_error():
    e = AuthError("bad creds")
    assert isinstance(e, RemoteSignerError)
    assert str(e) == "bad creds"


def test_transport_error_default_not_retryable():
    e = TransportError("config issue")
    assert e.retryable is False
    assert str(e) == "config issue"


def test_transport_error_retryable_flag():
    assert TransportError("timed out", retryable=True).retryable is True


def test_transport_error_pickle_preserves_retryable():
    restored = pickle.loads(pickle.dumps(TransportError("reset", retryable=True)))
    assert isinstance(restored, TransportError)
    assert restored.retryable is True
    assert str(restored) == "reset"
