"""Root conftest — shared fixtures: isolated env, certificates, fake clock, fake Proxmox.

Invariants:
    - No PVE_* variable or .env file from the developer machine leaks into a test
    - get_settings() cache is cleared around every test
    - Certificates are generated per test run with cryptography (nothing on disk
      unless a test writes it)
"""

import ipaddress
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from tests.fake_pve import FakeProxmox
from pvelink.config import Settings, get_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.upper().startswith("PVE_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ─── Certificates ────────────────────────────────────────────────

@dataclass
class IssuedCert:
    cert: x509.Certificate
    key: ec.EllipticCurvePrivateKey

    @property
    def der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def pem(self) -> str:
        return self.cert.public_bytes(serialization.Encoding.PEM).decode()

    @property
    def sha256(self) -> str:
        return self.cert.fingerprint(hashes.SHA256()).hex()


def _issue(
    common_name: str,
    dns_names: tuple[str, ...] = (),
    ip_addresses: tuple[str, ...] = (),
    issuer: IssuedCert | None = None,
    is_ca: bool = False,
    key: ec.EllipticCurvePrivateKey | None = None,
) -> IssuedCert:
    key = key or ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.cert.subject if issuer else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
    )
    sans = [x509.DNSName(name) for name in dns_names]
    sans += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses]
    if sans:
        builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)
    signing_key = issuer.key if issuer else key
    return IssuedCert(builder.sign(signing_key, hashes.SHA256()), key)


@pytest.fixture
def make_cert():
    """Factory: make_cert("pve1", dns_names=(...), issuer=ca, is_ca=False, key=None)."""
    return _issue


@pytest.fixture
def server_cert() -> IssuedCert:
    return _issue("pve1.lab.example", dns_names=("pve1.lab.example",), ip_addresses=("10.0.0.11",))


@pytest.fixture
def root_ca() -> IssuedCert:
    return _issue("Proxmox Virtual Environment", is_ca=True)


# ─── Clock ───────────────────────────────────────────────────────

class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ─── Fake Proxmox ────────────────────────────────────────────────

@pytest.fixture
def fake_pve() -> FakeProxmox:
    return FakeProxmox()


@pytest.fixture
def pve_transport(fake_pve) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=fake_pve.app)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        base_url="https://pve1.lab.example:8006",
        username="root",
        realm="pam",
        password="s3cret",
    )
