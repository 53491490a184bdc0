"""SOAP envelope builders for the remote document signer."""

from __future__ import annotations

__all__ = [
    "SIGNER_NAMESPACE",
    "build_connect_envelope",
    "build_logout_envelope",
    "build_sign_document_envelope",
    "xml_escape",
]

from xml.sax.saxutils import escape as _xml_escape

SIGNER_NAMESPACE = "http://tempuri.org/"


def xml_escape(s: str) -> str:
    """Escape XML special characters in user input."""
    return _xml_escape(s, {'"': "&quot;", "'": "&apos;"})


def _build_soap_envelope(action: str, parameters: dict[str, str]) -> str:
    """
    Build a SOAP 1.1 envelope calling ``action`` with the given parameters.

    All parameter values are XML-escaped internally -- callers do NOT
    need to escape them.
    """
    params = "".join(
        f"\n      <{name}>{xml_escape(value)}</{name}>" for name, value in parameters.items()
    )
    return f"""\
<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Body>
    <{action} xmlns="{SIGNER_NAMESPACE}">{params}
    </{action}>
  </soap:Body>
</soap:Envelope>"""


def build_connect_envelope(username: str, password: str, domain: str) -> str:
    """Build the envelope that opens a signer session."""
    return _build_soap_envelope(
        "Connect", {"username": username, "password": password, "domain": domain}
    )


def build_sign_document_envelope(connection_guid: str, document_b64: str) -> str:
    """Build the envelope that submits an XML document for signing."""
    return _build_soap_envelope(
        "SignProtocolXmlFile", {"connectionGuid": connection_guid, "file": document_b64}
    )


def build_logout_envelope(connection_guid: str) -> str:
    return _build_soap_envelope("LogOut", {"connectionGuid": connection_guid})
