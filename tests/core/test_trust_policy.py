"""Trust Policy — tests for pin matching, hostname checks and policy validation.

Tests cover:
    - Fingerprint normalisation ('AB:C1:23' == 'abc123')
    - Certificate and public-key fingerprint pins accept/reject
    - Certificate pins accept leaves directly issued by the pinned CA
    - Hostname mismatch rejects unless explicitly opted out
    - Empty or garbage chains reject without raising
    - Pinned needs exactly one of fingerprint / certificate
"""

import pytest

from pvelink.core.domain_types import FingerprintKind
from pvelink.core.errors import ConfigurationError
from pvelink.core.trust_policy import (
    Pinned, SystemDefault, TrustDecision, certificate_fingerprint,
    evaluate_chain, hostname_matches, normalize_fingerprint,
)


def _colon_hex(hex_digest: str) -> str:
    return ":".join(
        hex_digest[i:i + 2] for i in range(0, len(hex_digest), 2)
    ).upper()


# ─── Fingerprints ────────────────────────────────────────────────

def test_normalize_fingerprint_strips_separators_and_case():
    assert normalize_fingerprint("AB:C1:23") == "abc123"
    assert normalize_fingerprint("ab c1-23\n") == "abc123"
    assert normalize_fingerprint("abc123") == "abc123"


def test_certificate_fingerprint_matches_sha256_of_der(server_cert):
    assert certificate_fingerprint(server_cert.der, FingerprintKind.CERTIFICATE) == server_cert.sha256


def test_public_key_fingerprint_survives_reissue(make_cert, server_cert):
    reissued = make_cert(
        "pve1.lab.example", dns_names=("pve1.lab.example",), key=server_cert.key,
    )
    assert reissued.sha256 != server_cert.sha256
    assert (
        certificate_fingerprint(reissued.der, FingerprintKind.PUBLIC_KEY)
        == certificate_fingerprint(server_cert.der, FingerprintKind.PUBLIC_KEY)
    )


def test_certificate_fingerprint_rejects_garbage():
    with pytest.raises(ValueError):
        certificate_fingerprint(b"not a certificate", FingerprintKind.CERTIFICATE)


# ─── Pinned construction ─────────────────────────────────────────

def test_pinned_requires_exactly_one_pin_source(server_cert):
    with pytest.raises(ConfigurationError):
        Pinned()
    with pytest.raises(ConfigurationError):
        Pinned(fingerprint=server_cert.sha256, certificate_pem=server_cert.pem)


def test_pinned_rejects_empty_fingerprint():
    with pytest.raises(ConfigurationError) as exc_info:
        Pinned(fingerprint=" : : ")
    assert exc_info.value.field == "pinned_fingerprint"


def test_pinned_rejects_invalid_pem():
    with pytest.raises(ConfigurationError) as exc_info:
        Pinned(certificate_pem="-----BEGIN CERTIFICATE-----\nnope\n-----END CERTIFICATE-----\n")
    assert exc_info.value.field == "pinned_certificate"


def test_pinned_stores_normalized_fingerprint(server_cert):
    policy = Pinned(fingerprint=_colon_hex(server_cert.sha256))
    assert policy.fingerprint == server_cert.sha256
    assert policy.anchor_der is None


def test_pinned_certificate_exposes_anchor(server_cert):
    policy = Pinned(certificate_pem=server_cert.pem)
    assert policy.anchor_der == server_cert.der
    assert policy.certificate == server_cert.cert


def test_pinned_repr_hides_pem(server_cert):
    assert "BEGIN CERTIFICATE" not in repr(Pinned(certificate_pem=server_cert.pem))


# ─── evaluate_chain: pinned ──────────────────────────────────────

def test_fingerprint_pin_accepts_matching_leaf(server_cert):
    policy = Pinned(fingerprint=_colon_hex(server_cert.sha256))
    decision = evaluate_chain(policy, [server_cert.der], "pve1.lab.example")
    assert decision == TrustDecision.accept("pinned")


def test_fingerprint_pin_rejects_other_certificate(server_cert, make_cert):
    impostor = make_cert("pve1.lab.example", dns_names=("pve1.lab.example",))
    policy = Pinned(fingerprint=server_cert.sha256)
    decision = evaluate_chain(policy, [impostor.der], "pve1.lab.example")
    assert not decision.accepted
    assert "does not match" in decision.reason


def test_public_key_pin_accepts_reissued_certificate(server_cert, make_cert):
    reissued = make_cert(
        "pve1.lab.example", dns_names=("pve1.lab.example",), key=server_cert.key,
    )
    policy = Pinned(
        fingerprint=certificate_fingerprint(server_cert.der, FingerprintKind.PUBLIC_KEY),
        kind=FingerprintKind.PUBLIC_KEY,
    )
    assert evaluate_chain(policy, [reissued.der], "pve1.lab.example").accepted


def test_certificate_pin_accepts_identical_leaf(server_cert):
    policy = Pinned(certificate_pem=server_cert.pem)
    assert evaluate_chain(policy, [server_cert.der], "pve1.lab.example").accepted


def test_certificate_pin_accepts_leaf_issued_by_pinned_ca(root_ca, make_cert):
    leaf = make_cert("pve1.lab.example", dns_names=("pve1.lab.example",), issuer=root_ca)
    policy = Pinned(certificate_pem=root_ca.pem)
    assert evaluate_chain(policy, [leaf.der, root_ca.der], "pve1.lab.example").accepted


def test_certificate_pin_rejects_leaf_from_other_ca(root_ca, make_cert):
    other_ca = make_cert("Someone Else CA", is_ca=True)
    leaf = make_cert("pve1.lab.example", dns_names=("pve1.lab.example",), issuer=other_ca)
    policy = Pinned(certificate_pem=root_ca.pem)
    assert not evaluate_chain(policy, [leaf.der], "pve1.lab.example").accepted


def test_certificate_pin_rejects_forged_issuer_name(root_ca, make_cert):
    forged_ca = make_cert("Proxmox Virtual Environment", is_ca=True)
    leaf = make_cert("pve1.lab.example", dns_names=("pve1.lab.example",), issuer=forged_ca)
    policy = Pinned(certificate_pem=root_ca.pem)
    assert not evaluate_chain(policy, [leaf.der], "pve1.lab.example").accepted


def test_pin_with_hostname_mismatch_rejects(server_cert):
    policy = Pinned(fingerprint=server_cert.sha256)
    decision = evaluate_chain(policy, [server_cert.der], "pve2.lab.example")
    assert not decision.accepted
    assert "pve2.lab.example" in decision.reason


def test_pin_with_hostname_opt_out_accepts(server_cert):
    policy = Pinned(fingerprint=server_cert.sha256, allow_hostname_mismatch=True)
    decision = evaluate_chain(policy, [server_cert.der], "192.168.1.50")
    assert decision.accepted
    assert "hostname check disabled" in decision.reason


def test_hostname_opt_out_never_rescues_a_wrong_pin(server_cert, make_cert):
    impostor = make_cert("x")
    policy = Pinned(fingerprint=server_cert.sha256, allow_hostname_mismatch=True)
    assert not evaluate_chain(policy, [impostor.der], "pve1.lab.example").accepted


def test_empty_chain_rejects(server_cert):
    decision = evaluate_chain(Pinned(fingerprint=server_cert.sha256), [], "pve1.lab.example")
    assert not decision.accepted


def test_unparsable_leaf_rejects_without_raising():
    decision = evaluate_chain(SystemDefault(), [b"\x00garbage"], "pve1.lab.example")
    assert not decision.accepted
    assert "could not be parsed" in decision.reason


# ─── evaluate_chain: system ──────────────────────────────────────

def test_system_policy_checks_hostname(server_cert):
    assert evaluate_chain(SystemDefault(), [server_cert.der], "pve1.lab.example").accepted
    assert not evaluate_chain(SystemDefault(), [server_cert.der], "evil.example").accepted


# ─── hostname_matches ────────────────────────────────────────────

def test_hostname_matches_ip_san(server_cert):
    assert hostname_matches(server_cert.cert, "10.0.0.11")
    assert not hostname_matches(server_cert.cert, "10.0.0.12")


def test_hostname_matches_single_label_wildcard(make_cert):
    cert = make_cert("wild", dns_names=("*.lab.example",)).cert
    assert hostname_matches(cert, "pve1.lab.example")
    assert hostname_matches(cert, "PVE1.LAB.EXAMPLE.")
    assert not hostname_matches(cert, "a.b.lab.example")
    assert not hostname_matches(cert, "lab.example")


def test_hostname_requires_san(make_cert):
    cert = make_cert("pve1.lab.example").cert
    assert not hostname_matches(cert, "pve1.lab.example")
