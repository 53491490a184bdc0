"""
Application-wide constants for packagesign.

Timeouts, size limits, file naming conventions, and environment variable
names are centralized here for easy maintenance and configuration.
"""

from __future__ import annotations

import importlib.metadata

try:
    __version__ = importlib.metadata.version("packagesign")
except importlib.metadata.PackageNotFoundError:
    __version__ = "1.0.0"

__all__ = [
    "BYTES_PER_MB",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_BACKOFF",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_SIGNING_SERVICE_URL",
    "DEFAULT_TIMEOUT_HTTP_POST",
    "DEFAULT_TIMEOUT_SOAP",
    "DEFAULT_TIMEOUT_TIMESTAMP",
    "DEFAULT_TIMESTAMP_URL",
    "EMBEDDED_DOCUMENT_PATH",
    "ENV_AZURE_CLIENT_ID",
    "ENV_AZURE_CLIENT_SECRET",
    "ENV_AZURE_KEY_VAULT_CERTIFICATE",
    "ENV_AZURE_KEY_VAULT_URL",
    "ENV_AZURE_TENANT_ID",
    "ENV_SIGNING_DOMAIN",
    "ENV_SIGNING_PASSWORD",
    "ENV_SIGNING_SERVICE_URL",
    "ENV_SIGNING_USERNAME",
    "ENV_TIMESTAMP_URL",
    "MANIFEST_PUBLISHER",
    "MANIFEST_VERSION",
    "MAX_RESPONSE_SIZE",
    "RECV_BUFFER_SIZE",
    "SCRATCH_PREFIX",
    "SIGNABLE_EXTENSION",
    "SIGNATURE_ENTRY",
    "SUPPORTED_PLATFORMS",
    "XML_PREVIEW_LENGTH",
    "__version__",
]

# ── Timeout values (seconds) ──────────────────────────────────────────

# Remote document signer SOAP calls
DEFAULT_TIMEOUT_SOAP = 120

# HTTP POST request timeout (generic)
DEFAULT_TIMEOUT_HTTP_POST = 120

# RFC 3161 timestamp authority round-trip
DEFAULT_TIMEOUT_TIMESTAMP = 30


# ── Size units ────────────────────────────────────────────────────────

BYTES_PER_MB = 1024 * 1024


# ── Size limits (bytes) ───────────────────────────────────────────────

# Maximum response body size for HTTP requests (50 MB)
MAX_RESPONSE_SIZE = 50 * 1024 * 1024

# Chunk size for bounded response reads
RECV_BUFFER_SIZE = 8192


# ── Retry configuration ───────────────────────────────────────────────

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_RETRY_BACKOFF = 2.0


# ── Remote services ─────────────────────────────────────────────────

DEFAULT_SIGNING_SERVICE_URL = "https://protocol.skyline.be/Soap.asmx"

DEFAULT_TIMESTAMP_URL = "http://timestamp.acs.microsoft.com"

# XML preview truncation length for error messages (characters)
XML_PREVIEW_LENGTH = 300


# ── Package layout ──────────────────────────────────────────────────

# Suffix of the generic container the signing engine operates on
SIGNABLE_EXTENSION = ".nupkg"

# Zip entry holding the CMS author signature inside a signed container
SIGNATURE_ENTRY = ".signature.p7s"

# Location of the embedded XML document inside a composite package
EMBEDDED_DOCUMENT_PATH = ("Protocol", "Protocol.xml")

# Placeholder version and publisher written into the injected manifest
MANIFEST_VERSION = "1.0.0"
MANIFEST_PUBLISHER = "Skyline Communications"

# Prefix of per-operation scratch directories
SCRATCH_PREFIX = "packagesign-"


# ── Platform ────────────────────────────────────────────────────────

# sys.platform values on which sign/verify are allowed to run
SUPPORTED_PLATFORMS = ("win32",)


# ── Environment variable names ──────────────────────────────────────

ENV_AZURE_TENANT_ID = "AZURE_TENANT_ID"
ENV_AZURE_CLIENT_ID = "AZURE_CLIENT_ID"
ENV_AZURE_CLIENT_SECRET = "AZURE_CLIENT_SECRET"
ENV_AZURE_KEY_VAULT_URL = "AZURE_KEY_VAULT_URL"
ENV_AZURE_KEY_VAULT_CERTIFICATE = "AZURE_KEY_VAULT_CERTIFICATE"
ENV_SIGNING_DOMAIN = "SIGNING_DOMAIN"
ENV_SIGNING_USERNAME = "SIGNING_USERNAME"
ENV_SIGNING_PASSWORD = "SIGNING_PASSWORD"
ENV_SIGNING_SERVICE_URL = "SIGNING_SERVICE_URL"
ENV_TIMESTAMP_URL = "PACKAGESIGN_TIMESTAMP_URL"
