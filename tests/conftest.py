"""Shared test fixtures for the packagesign test suite."""

from __future__ import annotations

import contextlib
import datetime
import hashlib
import zipfile
from dataclasses import dataclass

import pytest
from asn1crypto import cms, tsp
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID
from keyring.errors import KeyringError, PasswordDeleteError

from packagesign.config.credentials import CredentialSet
from packagesign.core.engine import SigningEngine
from packagesign.core.keys import LocalSigningKey, SignatureInfo
from packagesign.core.package import PackageFormat
from packagesign.ui.workflows import WorkflowContext

SAMPLE_DOCUMENT = b'<?xml version="1.0" encoding="utf-8"?>\n<Protocol><Name>Sample</Name></Protocol>\n'
SIGNED_DOCUMENT = (
    b'<?xml version="1.0" encoding="utf-8"?>\n'
    b"<Protocol><Name>Sample</Name><Signature>c2lnbmVk</Signature></Protocol>\n"
)

_ENV_NAMES = (
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "AZURE_KEY_VAULT_URL",
    "AZURE_KEY_VAULT_CERTIFICATE",
    "SIGNING_DOMAIN",
    "SIGNING_USERNAME",
    "SIGNING_PASSWORD",
    "SIGNING_SERVICE_URL",
    "PACKAGESIGN_TIMESTAMP_URL",
)


# ── Isolation ──────────────────────────────────────────────────────


class FakeKeyring:
    """In-memory stand-in for the keyring module."""

    def __init__(self) -> None:
        self.store: dict[tuple[str, str], str] = {}
        self.broken = False

    def _check(self) -> None:
        if self.broken:
            raise KeyringError("No recommended backend was available.")

    def get_password(self, service, key):
        self._check()
        return self.store.get((service, key))

    def set_password(self, service, key, value):
        self._check()
        self.store[(service, key)] = value

    def delete_password(self, service, key):
        self._check()
        if (service, key) not in self.store:
            raise PasswordDeleteError("not found")
        del self.store[(service, key)]

    def get_keyring(self):
        return self


@pytest.fixture(autouse=True)
def config_dir(tmp_path_factory, monkeypatch):
    """Redirect config to a temp directory and clear credential variables.

    Autouse so no test reads or writes the real ~/.packagesign.
    """
    directory = tmp_path_factory.mktemp("config")
    monkeypatch.setattr("packagesign.config._storage.CONFIG_DIR", directory)
    monkeypatch.setattr("packagesign.config._storage.CONFIG_FILE", directory / "config.json")
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return directory


@pytest.fixture(autouse=True)
def keyring_backend(monkeypatch):
    """Replace the system keychain with an in-memory one."""
    fake = FakeKeyring()
    monkeypatch.setattr("packagesign.config.credentials.keyring", fake)
    return fake


# ── Certificates ───────────────────────────────────────────────────


@dataclass
class Identity:
    """Private key plus certificate, in both library representations."""

    key: rsa.RSAPrivateKey
    cert: x509.Certificate

    @property
    def der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)

    @property
    def certificate(self) -> asn1_x509.Certificate:
        return asn1_x509.Certificate.load(self.der)

    @property
    def signature_info(self) -> SignatureInfo:
        return SignatureInfo(certificate=self.certificate, key=LocalSigningKey(self.key))


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)


def make_identity(
    common_name: str,
    *,
    issuer: Identity | None = None,
    not_before: datetime.datetime | None = None,
    not_after: datetime.datetime | None = None,
    ca: bool = False,
) -> Identity:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    now = _utcnow()
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer.cert.subject if issuer else name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - datetime.timedelta(days=1))
        .not_valid_after(not_after or now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    cert = builder.sign(issuer.key if issuer else key, hashes.SHA256())
    return Identity(key=key, cert=cert)


@pytest.fixture(scope="session")
def signer() -> Identity:
    return make_identity("Package Signer")


@pytest.fixture(scope="session")
def other_signer() -> Identity:
    return make_identity("Someone Else")


@pytest.fixture(scope="session")
def root_ca() -> Identity:
    return make_identity("Test Root CA", ca=True)


@pytest.fixture(scope="session")
def issued_signer(root_ca) -> Identity:
    return make_identity("Issued Signer", issuer=root_ca)


@pytest.fixture(scope="session")
def tsa_identity() -> Identity:
    return make_identity("Test Timestamp Authority")


@pytest.fixture
def identity_factory():
    return make_identity


# ── Timestamp authority ────────────────────────────────────────────


class FakeTimestampAuthority:
    """Issues RFC 3161 tokens signed by a throwaway TSA certificate."""

    def __init__(self, identity: Identity) -> None:
        self.identity = identity
        self.digests: list[bytes] = []

    def token(
        self,
        message_digest: bytes,
        nonce: int | None = None,
        gen_time: datetime.datetime | None = None,
    ) -> cms.ContentInfo:
        info = {
            "version": "v1",
            "policy": "1.3.6.1.4.1.55555.1",
            "message_imprint": {
                "hash_algorithm": {"algorithm": "sha256"},
                "hashed_message": message_digest,
            },
            "serial_number": x509.random_serial_number(),
            "gen_time": gen_time or _utcnow(),
        }
        if nonce is not None:
            info["nonce"] = nonce
        tst = tsp.TSTInfo(info)
        signed_attrs = cms.CMSAttributes(
            [
                cms.CMSAttribute({"type": "content_type", "values": ["tst_info"]}),
                cms.CMSAttribute(
                    {"type": "message_digest", "values": [hashlib.sha256(tst.dump()).digest()]}
                ),
            ]
        )
        signature = self.identity.key.sign(
            signed_attrs.dump(), padding.PKCS1v15(), hashes.SHA256()
        )
        cert = self.identity.certificate
        signer_info = cms.SignerInfo(
            {
                "version": "v1",
                "sid": cms.SignerIdentifier(
                    {
                        "issuer_and_serial_number": cms.IssuerAndSerialNumber(
                            {"issuer": cert.issuer, "serial_number": cert.serial_number}
                        )
                    }
                ),
                "digest_algorithm": {"algorithm": "sha256"},
                "signature_algorithm": {"algorithm": "sha256_rsa"},
                "signed_attrs": signed_attrs,
                "signature": signature,
            }
        )
        signed_data = cms.SignedData(
            {
                "version": "v3",
                "digest_algorithms": [{"algorithm": "sha256"}],
                "encap_content_info": {"content_type": "tst_info", "content": tst},
                "certificates": [cms.CertificateChoices(name="certificate", value=cert)],
                "signer_infos": [signer_info],
            }
        )
        return cms.ContentInfo({"content_type": "signed_data", "content": signed_data})

    def timestamp(self, message_digest: bytes) -> cms.ContentInfo:
        self.digests.append(message_digest)
        return self.token(message_digest)

    def respond(self, request_der: bytes, status: str = "granted") -> bytes:
        """Answer a DER TimeStampReq the way an authority would."""
        request = tsp.TimeStampReq.load(request_der)
        if status not in ("granted", "granted_with_mods"):
            # A refusal carries the status alone; TimeStampResp cannot dump without a token.
            status_info = tsp.PKIStatusInfo({"status": status}).dump()
            return b"\x30" + bytes([len(status_info)]) + status_info
        token = self.token(
            request["message_imprint"]["hashed_message"].native, request["nonce"].native
        )
        return tsp.TimeStampResp({"status": {"status": status}, "time_stamp_token": token}).dump()


@pytest.fixture
def tsa(tsa_identity) -> FakeTimestampAuthority:
    return FakeTimestampAuthority(tsa_identity)


# ── Packages ───────────────────────────────────────────────────────


_DEFAULT_ENTRIES = {
    PackageFormat.SIMPLE: {
        "AppInfo.xml": b"<AppInfo><Name>App</Name></AppInfo>",
        "AppInstallContent/Assemblies/Library.dll": b"MZ" + bytes(range(256)) * 4,
        "AppInstallContent/Scripts/Install.xml": b"<Script/>",
    },
    PackageFormat.COMPOSITE: {
        "Protocol/Protocol.xml": SAMPLE_DOCUMENT,
        "Protocol/Information/Help.txt": b"help",
        "Dependencies/Library.dll": b"MZ" + bytes(range(64)),
    },
}


@pytest.fixture
def package_factory(tmp_path):
    """Build zip packages on disk. Returns the package path."""

    def _make(
        name: str = "App",
        package_format: PackageFormat = PackageFormat.SIMPLE,
        directory=None,
        entries: dict[str, bytes] | None = None,
    ):
        directory = directory or tmp_path / "packages"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}{package_format.extension}"
        if entries is None:
            entries = _DEFAULT_ENTRIES[package_format]
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for entry, data in entries.items():
                archive.writestr(entry, data)
        return path

    return _make


# ── Collaborator doubles ───────────────────────────────────────────


class FakeKeyService:
    """KeyService returning a fixed SignatureInfo, or raising a fixed error."""

    def __init__(self, signature_info: SignatureInfo | None = None, error=None) -> None:
        self.signature_info = signature_info
        self.error = error
        self.calls = 0

    def resolve(self, credentials):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.signature_info


class FakeSession:
    def __init__(self, signed: bytes = SIGNED_DOCUMENT, error=None) -> None:
        self.signed = signed
        self.error = error
        self.documents: list[bytes] = []

    def sign_document(self, document: bytes) -> bytes:
        self.documents.append(document)
        if self.error is not None:
            raise self.error
        return self.signed


class FakeDocumentSigner:
    """DocumentSigner that records session lifetimes."""

    def __init__(self, session: FakeSession | None = None, connect_error=None) -> None:
        self.fake_session = session or FakeSession()
        self.connect_error = connect_error
        self.opened: list[tuple[str, str, str]] = []
        self.closed = 0

    @contextlib.contextmanager
    def session(self, username, password, domain):
        if self.connect_error is not None:
            raise self.connect_error
        self.opened.append((username, password, domain))
        try:
            yield self.fake_session
        finally:
            self.closed += 1


@pytest.fixture
def credentials() -> CredentialSet:
    return CredentialSet(
        azure_tenant_id="tenant",
        azure_client_id="client",
        azure_client_secret="client-secret",
        azure_key_vault_url="https://vault.example.net/",
        azure_key_vault_certificate="package-signing",
        signing_domain="DOMAIN",
        signing_username="builder",
        signing_password="hunter2",
    )


@pytest.fixture
def context_factory(credentials):
    def _make(
        key_service,
        *,
        engine: SigningEngine | None = None,
        creds: CredentialSet | None = None,
        on_verification_error: str = "abort",
    ) -> WorkflowContext:
        return WorkflowContext(
            credentials=creds or credentials,
            key_service=key_service,
            engine=engine or SigningEngine(),
            on_verification_error=on_verification_error,
        )

    return _make


@pytest.fixture
def fake_key_service():
    return FakeKeyService


@pytest.fixture
def fake_document_signer():
    return FakeDocumentSigner


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def documents() -> tuple[bytes, bytes]:
    """The embedded document of default composite packages, before and after signing."""
    return SAMPLE_DOCUMENT, SIGNED_DOCUMENT
