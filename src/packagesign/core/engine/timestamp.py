"""
RFC 3161 timestamping.

Countersigns the author signature with a trusted time so the signature
stays verifiable after the signing certificate expires.
"""

from __future__ import annotations

__all__ = ["HttpTimestamper", "Timestamper", "tst_info"]

import logging
import secrets
from typing import Protocol

from asn1crypto import algos, cms, core, tsp

from ...constants import DEFAULT_TIMEOUT_TIMESTAMP
from ...errors import SigningEngineError, TransportError
from ...network.transport import http_post

_logger = logging.getLogger(__name__)

_GRANTED = ("granted", "granted_with_mods")


class _TimeStampResp(tsp.TimeStampResp):
    """TimeStampResp whose token may be absent, as in a rejection."""

    _fields = [
        ("status", tsp.PKIStatusInfo),
        ("time_stamp_token", cms.ContentInfo, {"optional": True}),
    ]


class Timestamper(Protocol):
    """Supplier of timestamp tokens over a SHA-256 message digest."""

    def timestamp(self, message_digest: bytes) -> cms.ContentInfo: ...


def tst_info(token: cms.ContentInfo) -> tsp.TSTInfo:
    """Return the parsed TSTInfo encapsulated in a timestamp token."""
    return token["content"]["encap_content_info"]["content"].parsed


class HttpTimestamper:
    """Timestamper talking to an RFC 3161 authority over HTTP(S)."""

    def __init__(self, url: str, timeout: int = DEFAULT_TIMEOUT_TIMESTAMP) -> None:
        self.url = url
        self.timeout = timeout

    def _request(self, message_digest: bytes, nonce: int) -> tsp.TimeStampReq:
        return tsp.TimeStampReq(
            {
                "version": 1,
                "message_imprint": tsp.MessageImprint(
                    {
                        "hash_algorithm": algos.DigestAlgorithm({"algorithm": "sha256"}),
                        "hashed_message": message_digest,
                    }
                ),
                "nonce": nonce,
                "cert_req": True,
            }
        )

    def timestamp(self, message_digest: bytes) -> cms.ContentInfo:
        """
        Request a timestamp token for ``message_digest``.

        Raises:
            SigningEngineError: If the authority is unreachable, refuses the
                request, or answers with a token for a different request.
        """
        nonce = secrets.randbits(63)
        body = self._request(message_digest, nonce).dump()
        _logger.debug("Requesting timestamp from %s", self.url)
        try:
            response_der = http_post(
                self.url,
                body,
                headers={"Content-Type": "application/timestamp-query"},
                timeout=self.timeout,
                require_https=False,
            )
        except TransportError as e:
            raise SigningEngineError(f"Timestamp authority unreachable: {e}") from e

        try:
            response = _TimeStampResp.load(response_der)
            status = response["status"]["status"].native
            if status not in _GRANTED:
                raise SigningEngineError(f"Timestamp request rejected by {self.url}: {status}")
            token = response["time_stamp_token"]
            if isinstance(token, core.Void):
                raise SigningEngineError(f"Timestamp response from {self.url} carries no token")
            info = tst_info(token)
            imprint = info["message_imprint"]["hashed_message"].native
            returned_nonce = info["nonce"].native
        except (ValueError, TypeError, KeyError) as e:
            raise SigningEngineError(f"Malformed timestamp response from {self.url}: {e}") from e

        if imprint != message_digest:
            raise SigningEngineError("Timestamp token covers a different message digest")
        if returned_nonce != nonce:
            raise SigningEngineError("Timestamp token nonce does not match the request")
        _logger.info("Timestamped at %s by %s", info["gen_time"].native, self.url)
        return token
