"""
HTTP transport shared by the SOAP document signer and the timestamp client.

Everything goes through :func:`http_post`: one POST, retried with
exponential backoff while the failure is transient. Redirects that would
downgrade HTTPS to HTTP are refused, and response bodies are capped at
``MAX_RESPONSE_SIZE``.
"""

from __future__ import annotations

__all__ = ["http_post"]

import logging
import time
import urllib.error
import urllib.request
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlparse

from ..constants import (
    BYTES_PER_MB,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT_HTTP_POST,
    MAX_RESPONSE_SIZE,
    RECV_BUFFER_SIZE,
)
from ..errors import TransportError

if TYPE_CHECKING:
    import http.client

_logger = logging.getLogger(__name__)

# HTTP statuses http_post retries; any other status fails at once.
_RETRYABLE_STATUS = frozenset({502, 503, 504})


def _check_url(url: str, require_https: bool) -> None:
    """
    Raises:
        TransportError: If the URL has no host or an unsupported scheme, or
            is plain HTTP while ``require_https`` is set.
    """
    parts = urlparse(url)
    scheme = parts.scheme.lower()
    if not parts.hostname:
        raise TransportError(f"Cannot extract hostname from URL: {url}")
    if scheme not in ("http", "https"):
        raise TransportError(f"Unsupported URL scheme {scheme}:// in {url}")
    if require_https and scheme == "http":
        raise TransportError(
            f"Only HTTPS URLs are allowed for {parts.hostname}; "
            "signing credentials are never sent in the clear."
        )


# ── Response handling ────────────────────────────────────────────────


class _Readable(Protocol):
    def read(self, amt: int = ...) -> bytes: ...


def _read_with_limit(response: _Readable, url: str) -> bytes:
    """Read a response body in chunks, failing once it passes MAX_RESPONSE_SIZE."""
    body = bytearray()
    while True:
        chunk = response.read(RECV_BUFFER_SIZE)
        if not chunk:
            break
        body += chunk
        if len(body) > MAX_RESPONSE_SIZE:
            limit_mb = MAX_RESPONSE_SIZE // BYTES_PER_MB
            raise TransportError(f"Response from {url} exceeds {limit_mb} MB limit")
    return bytes(body)


class _SafeRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Follows redirects except from HTTPS to HTTP."""

    def redirect_request(  # type: ignore[override]
        self,
        req: urllib.request.Request,
        fp: http.client.HTTPResponse,
        code: int,
        msg: str,
        headers: http.client.HTTPMessage,
        newurl: str,
    ) -> urllib.request.Request | None:
        if urlparse(req.full_url).scheme == "https" and urlparse(newurl).scheme == "http":
            raise TransportError(f"Refused redirect from HTTPS to HTTP: {newurl}")
        return super().redirect_request(req, fp, code, msg, headers, newurl)


_opener = urllib.request.build_opener(_SafeRedirectHandler)


def _safe_urlopen(request: urllib.request.Request, *, timeout: int) -> http.client.HTTPResponse:
    return _opener.open(request, timeout=timeout)


def _post_once(url: str, body: bytes, headers: dict[str, str], timeout: int) -> bytes:
    """Single POST attempt. Transient failures come back as retryable errors."""
    request = urllib.request.Request(url, data=body, headers=headers, method="POST")  # noqa: S310
    try:
        with _safe_urlopen(request, timeout=timeout) as response:
            return _read_with_limit(response, url)
    except urllib.error.HTTPError as e:
        raise TransportError(
            f"HTTP POST failed: {url}: HTTP {e.code} {e.reason}",
            retryable=e.code in _RETRYABLE_STATUS,
        ) from e
    except urllib.error.URLError as e:
        raise TransportError(f"HTTP POST failed: {url}: {e.reason}", retryable=True) from e
    except TimeoutError as e:
        raise TransportError(f"Connection timed out after {timeout}s: {url}", retryable=True) from e


# ── Public API ───────────────────────────────────────────────────────


def http_post(
    url: str,
    body: bytes,
    *,
    headers: dict[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT_HTTP_POST,
    max_retries: int = DEFAULT_MAX_RETRIES,
    require_https: bool = True,
) -> bytes:
    """
    POST ``body`` to ``url`` and return the response body.

    Args:
        url: Target URL.
        body: Request body bytes.
        headers: Extra request headers.
        timeout: Per-attempt timeout in seconds.
        max_retries: Attempts after the first one for retryable failures.
        require_https: Refuse plain HTTP. Only the timestamp client turns
            this off.

    Raises:
        TransportError: On a bad URL, an HTTP error status, or once the
            retries for a transient failure are used up.
    """
    _check_url(url, require_https)
    delay = DEFAULT_RETRY_DELAY
    attempts = max(max_retries, 0) + 1
    attempt = 0
    while True:
        attempt += 1
        _logger.debug("POST %s (attempt %d, %d bytes)", url, attempt, len(body))
        try:
            data = _post_once(url, body, headers or {}, timeout)
        except TransportError as e:
            if not e.retryable or attempt == attempts:
                raise
            _logger.warning(
                "POST %s failed (attempt %d/%d): %s. Retrying in %.1fs...",
                url,
                attempt,
                attempts,
                e,
                delay,
            )
            time.sleep(delay)
            delay *= DEFAULT_RETRY_BACKOFF
        else:
            _logger.debug("POST %s -> %d bytes", url, len(data))
            return data
