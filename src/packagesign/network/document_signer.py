"""
Remote document signer.

Signs the XML document embedded in composite packages. The service is
session based: Connect returns a session GUID that is passed to every
SignProtocolXmlFile call and released with LogOut.
"""

from __future__ import annotations

__all__ = ["DocumentSigner", "SignerSession", "SoapDocumentSigner"]

import base64
import contextlib
import logging
from typing import TYPE_CHECKING, Protocol

from ..constants import DEFAULT_TIMEOUT_SOAP
from ..errors import PackageSignError, RemoteSignerError
from .soap import (
    build_connect_envelope,
    build_logout_envelope,
    build_sign_document_envelope,
    parse_connect_response,
    parse_logout_response,
    parse_sign_document_response,
    send_soap,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

_logger = logging.getLogger(__name__)


class SignerSession(Protocol):
    """An authenticated session on the remote document signer."""

    def sign_document(self, document: bytes) -> bytes:
        """
        Submit a document and return its signed replacement.

        Raises:
            RemoteSignerError: If the service rejects the document.
            TransportError: On connection issues.
        """
        ...


class DocumentSigner(Protocol):
    """Factory for scoped signer sessions."""

    def session(
        self, username: str, password: str, domain: str
    ) -> contextlib.AbstractContextManager[SignerSession]:
        """
        Open a session that is closed when the ``with`` block exits.

        Raises:
            AuthError: If the credentials are rejected.
            RemoteSignerError: If the service cannot be reached or misbehaves.
        """
        ...


class _SoapSignerSession:
    def __init__(self, url: str, connection_guid: str, timeout: int) -> None:
        self._url = url
        self._guid = connection_guid
        self._timeout = timeout

    def sign_document(self, document: bytes) -> bytes:
        if not document:
            raise RemoteSignerError("Cannot sign an empty document.")
        _logger.info("Signing document via SOAP: %d bytes", len(document))
        document_b64 = base64.b64encode(document).decode("ascii")
        envelope = build_sign_document_envelope(self._guid, document_b64)
        response = send_soap(self._url, envelope, "SignProtocolXmlFile", timeout=self._timeout)
        signed = parse_sign_document_response(response)
        _logger.info("Received signed document: %d bytes", len(signed))
        return signed

    def log_out(self) -> None:
        envelope = build_logout_envelope(self._guid)
        response = send_soap(self._url, envelope, "LogOut", timeout=self._timeout)
        parse_logout_response(response)


class SoapDocumentSigner:
    """SOAP implementation of the DocumentSigner protocol."""

    def __init__(self, url: str, timeout: int = DEFAULT_TIMEOUT_SOAP) -> None:
        """
        Args:
            url: SOAP endpoint of the signing service (HTTPS only).
            timeout: Per-request timeout in seconds.
        """
        self.url = url
        self.timeout = timeout

    @contextlib.contextmanager
    def session(self, username: str, password: str, domain: str) -> Iterator[SignerSession]:
        _logger.info("Connecting to signing service %s as %s", self.url, username)
        envelope = build_connect_envelope(username, password, domain)
        response = send_soap(self.url, envelope, "Connect", timeout=self.timeout)
        guid = parse_connect_response(response)
        session = _SoapSignerSession(self.url, guid, self.timeout)
        try:
            yield session
        finally:
            try:
                session.log_out()
                _logger.debug("Signer session closed")
            except PackageSignError as e:
                # The session expires server-side anyway
                _logger.warning("Failed to log out from signing service: %s", e)
