"""
SOAP transport and XML parsing for the remote document signer.
"""

from __future__ import annotations

import logging

from ..constants import DEFAULT_TIMEOUT_SOAP
from .soap_envelope import (
    SIGNER_NAMESPACE,
    build_connect_envelope,
    build_logout_envelope,
    build_sign_document_envelope,
    xml_escape,
)
from .soap_parsers import (
    parse_connect_response,
    parse_logout_response,
    parse_sign_document_response,
)
from .transport import http_post

_logger = logging.getLogger(__name__)

__all__ = [
    "SIGNER_NAMESPACE",
    "build_connect_envelope",
    "build_logout_envelope",
    "build_sign_document_envelope",
    "parse_connect_response",
    "parse_logout_response",
    "parse_sign_document_response",
    "send_soap",
    "xml_escape",
]


def send_soap(url: str, envelope: str, action: str, timeout: int = DEFAULT_TIMEOUT_SOAP) -> str:
    """
    Send a SOAP request to the signing service.

    Returns the response body as string.
    Raises TransportError on connection issues or non-HTTPS URLs.
    """
    _logger.debug("SOAP request: action=%s, url=%s, timeout=%ds", action, url, timeout)
    headers = {
        "Content-Type": "text/xml; charset=utf-8",
        "SOAPAction": f'"{SIGNER_NAMESPACE}{action}"',
    }
    body = envelope.encode("utf-8")
    _logger.debug("Request body: %d bytes", len(body))
    response = http_post(url, body, headers=headers, timeout=timeout)
    decoded = response.decode("utf-8", errors="replace")
    _logger.debug("SOAP response: %d bytes", len(decoded))
    return decoded
