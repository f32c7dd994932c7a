"""Trust Policy — pure certificate acceptance rules for the TLS channel.

Invariants:
    - A chain that does not match the pin is ALWAYS rejected (no fallback to accept)
    - Hostname is checked against subjectAltName unless the pin explicitly opts out
    - An empty chain or an unparsable leaf is a rejection, never an exception
    - Policies are frozen: the mode chosen at configuration time cannot drift

Design Decisions:
    - Fingerprints compared after normalisation (no colons, lowercase) so operators
      can paste the value the Proxmox UI shows
    - Certificate pins also accept a leaf directly issued by the pinned certificate,
      which covers pinning the node's own CA (pve-root-ca)
"""

import hmac
import ipaddress
from collections.abc import Sequence
from dataclasses import dataclass, field

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import (
    Encoding, PublicFormat,
)

from pvelink.core.domain_types import FingerprintKind
from pvelink.core.errors import ConfigurationError


def normalize_fingerprint(value: str) -> str:
    """'AB:C1:23' / 'ab c1 23' / 'abc123' all normalise to 'abc123'."""
    return "".join(
        ch for ch in value if ch not in ":- \t\n"
    ).lower()


def certificate_fingerprint(der: bytes, kind: FingerprintKind) -> str:
    """SHA-256 over the certificate or its SubjectPublicKeyInfo, as lowercase hex.

    Raises ValueError if the certificate cannot be parsed.
    """
    cert = x509.load_der_x509_certificate(der)
    if kind is FingerprintKind.CERTIFICATE:
        return cert.fingerprint(hashes.SHA256()).hex()
    spki = cert.public_key().public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashes.Hash(hashes.SHA256())
    digest.update(spki)
    return digest.finalize().hex()


# ─── Policies ────────────────────────────────────────────────────

@dataclass(frozen=True)
class SystemDefault:
    """Platform trust store (optionally an extra CA bundle), hostname check mandatory."""
    ca_file: str | None = None


@dataclass(frozen=True)
class Pinned:
    """Accept exactly one certificate (or key), regardless of who issued it."""
    fingerprint: str | None = None
    certificate_pem: str | None = field(default=None, repr=False)
    kind: FingerprintKind = FingerprintKind.CERTIFICATE
    allow_hostname_mismatch: bool = False
    _certificate: x509.Certificate | None = field(
        default=None, init=False, repr=False, compare=False,
    )

    def __post_init__(self):
        if (self.fingerprint is None) == (self.certificate_pem is None):
            raise ConfigurationError(
                "Pinned trust needs exactly one of fingerprint or certificate",
                "pinned",
            )
        if self.fingerprint is not None:
            normalized = normalize_fingerprint(self.fingerprint)
            if not normalized:
                raise ConfigurationError(
                    "Pinned fingerprint is empty", "pinned_fingerprint",
                )
            object.__setattr__(self, "fingerprint", normalized)
            return
        try:
            cert = x509.load_pem_x509_certificate(self.certificate_pem.encode())
        except ValueError as e:
            raise ConfigurationError(
                f"Pinned certificate is not valid PEM: {e}",
                "pinned_certificate",
            ) from e
        object.__setattr__(self, "_certificate", cert)

    @property
    def certificate(self) -> x509.Certificate | None:
        return self._certificate

    @property
    def anchor_der(self) -> bytes | None:
        """DER of the pinned certificate, when the pin carries one."""
        if self._certificate is None:
            return None
        return self._certificate.public_bytes(Encoding.DER)


TrustPolicy = SystemDefault | Pinned


@dataclass(frozen=True)
class TrustDecision:
    accepted: bool
    reason: str | None = None

    @classmethod
    def accept(cls, reason: str | None = None) -> "TrustDecision":
        return cls(True, reason)

    @classmethod
    def reject(cls, reason: str) -> "TrustDecision":
        return cls(False, reason)


# ─── Evaluation ──────────────────────────────────────────────────

def evaluate_chain(
    policy: TrustPolicy, chain: Sequence[bytes], hostname: str,
) -> TrustDecision:
    """Decide whether a presented chain (leaf first, DER) is acceptable."""
    if not chain:
        return TrustDecision.reject("server presented no certificate")
    try:
        leaf = x509.load_der_x509_certificate(chain[0])
    except ValueError:
        return TrustDecision.reject("server certificate could not be parsed")

    if isinstance(policy, Pinned):
        if not _matches_pin(policy, leaf, chain[0]):
            return TrustDecision.reject(
                "server certificate does not match the pinned "
                f"{policy.kind.value} fingerprint",
            )
        if policy.allow_hostname_mismatch:
            return TrustDecision.accept("pinned; hostname check disabled")

    if not hostname_matches(leaf, hostname):
        return TrustDecision.reject(
            f"certificate is not valid for host {hostname!r}",
        )
    if isinstance(policy, Pinned):
        return TrustDecision.accept("pinned")
    # chain validation itself happens in the platform verifier during the handshake
    return TrustDecision.accept("hostname verified; chain delegated to platform")


def _matches_pin(policy: Pinned, leaf: x509.Certificate, leaf_der: bytes) -> bool:
    if policy.fingerprint is not None:
        presented = certificate_fingerprint(leaf_der, policy.kind)
        return hmac.compare_digest(presented, policy.fingerprint)

    pinned = policy.certificate
    if hmac.compare_digest(leaf_der, policy.anchor_der):
        return True
    try:
        leaf.verify_directly_issued_by(pinned)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def hostname_matches(cert: x509.Certificate, hostname: str) -> bool:
    """RFC 6125 subset: SAN only, one left-most wildcard label, IP SANs for IPs."""
    try:
        san = cert.extensions.get_extension_for_class(
            x509.SubjectAlternativeName,
        ).value
    except x509.ExtensionNotFound:
        return False

    try:
        ip = ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        ip = None
    if ip is not None:
        return ip in san.get_values_for_type(x509.IPAddress)

    host = hostname.rstrip(".").lower()
    return any(
        _dns_name_matches(pattern.lower(), host)
        for pattern in san.get_values_for_type(x509.DNSName)
    )


def _dns_name_matches(pattern: str, host: str) -> bool:
    if pattern.startswith("*."):
        suffix = pattern[1:]
        label = host[: -len(suffix)] if host.endswith(suffix) else ""
        return bool(label) and "." not in label
    return pattern == host
