"""SOAP response parsers for the remote document signer."""

from __future__ import annotations

__all__ = [
    "parse_connect_response",
    "parse_logout_response",
    "parse_sign_document_response",
]

import base64
import binascii
import logging
import re
from typing import TYPE_CHECKING
from xml.etree.ElementTree import ParseError as _XMLParseError

import defusedxml.ElementTree as ET

from ..constants import XML_PREVIEW_LENGTH
from ..errors import AuthError, RemoteSignerError

if TYPE_CHECKING:
    from xml.etree.ElementTree import Element

_logger = logging.getLogger(__name__)

# All-zero GUID the service returns when credentials are rejected
_EMPTY_GUID = "00000000-0000-0000-0000-000000000000"

# Regex patterns for redacting credentials from XML previews in error messages
_REDACT_PATTERNS = tuple(
    (rf"<(\w+:)?{tag}>[^<]*</(\w+:)?{tag}>", f"<{tag}>[REDACTED]</{tag}>")
    for tag in ("password", "connectionGuid", "ConnectResult")
)


def _strip_namespace(tag: str) -> str:
    """Strip XML namespace prefix from a tag name."""
    return tag.split("}")[-1] if "}" in tag else tag


def _redact_and_truncate_xml(xml_str: str) -> str:
    """Redact credentials and session tokens, then truncate to preview length."""
    redacted = xml_str
    for pattern, replacement in _REDACT_PATTERNS:
        redacted = re.sub(pattern, replacement, redacted, flags=re.IGNORECASE)
    return redacted[:XML_PREVIEW_LENGTH]


def _parse_root(xml_str: str, operation: str) -> Element:
    """Parse the response and raise on SOAP faults.

    Raises:
        RemoteSignerError: On malformed XML or a SOAP Fault.
    """
    try:
        root = ET.fromstring(xml_str)
    except _XMLParseError as e:
        _logger.exception("Invalid XML in %s response", operation)
        safe_preview = _redact_and_truncate_xml(xml_str[:500])
        raise RemoteSignerError(f"Invalid XML response: {e}\nRaw: {safe_preview}") from e

    for elem in root.iter():
        if _strip_namespace(elem.tag) == "Fault":
            fault = ""
            for child in elem.iter():
                if _strip_namespace(child.tag) == "faultstring" and child.text:
                    fault = child.text.strip()
            _logger.error("%s failed: %s", operation, fault or "SOAP fault")
            raise RemoteSignerError(f"{operation} failed: {fault or 'SOAP fault'}")
    return root


def _find_text(root: Element, tag: str) -> str | None:
    for elem in root.iter():
        if _strip_namespace(elem.tag) == tag:
            return (elem.text or "").strip()
    return None


def parse_connect_response(xml_str: str) -> str:
    """
    Parse the Connect response.

    Returns:
        The session GUID.

    Raises:
        AuthError: If the service returned no usable session GUID.
        RemoteSignerError: If the response cannot be parsed.
    """
    root = _parse_root(xml_str, "Connect")
    guid = _find_text(root, "ConnectResult")
    if not guid or guid == _EMPTY_GUID:
        _logger.warning("Remote signer rejected the credentials")
        raise AuthError("Authentication failed: the signing service returned no session.")
    return guid


def parse_sign_document_response(xml_str: str) -> bytes:
    """
    Parse the SignProtocolXmlFile response.

    Returns:
        The signed document bytes.

    Raises:
        RemoteSignerError: If the response is empty or malformed.
    """
    root = _parse_root(xml_str, "SignProtocolXmlFile")
    result_b64 = _find_text(root, "SignProtocolXmlFileResult")
    if not result_b64:
        _logger.error("Signing service returned no document")
        raise RemoteSignerError("Signing service returned no document.")
    try:
        signed = base64.b64decode(result_b64, validate=True)
    except binascii.Error as e:
        raise RemoteSignerError(f"Invalid Base64 in server response: {e}") from e
    _logger.debug("Decoded signed document: %d bytes", len(signed))
    return signed


def parse_logout_response(xml_str: str) -> None:
    """Raise RemoteSignerError if LogOut returned a fault."""
    _parse_root(xml_str, "LogOut")
