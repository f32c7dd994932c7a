"""Trust Evaluator — turns a TrustPolicy into the SSLContext every connection uses.

Invariants:
    - SystemDefault: CERT_REQUIRED + hostname check, platform store (plus optional CA file)
    - Pinned: the presented leaf is evaluated BEFORE any HTTP byte is written;
      rejection raises TlsTrustError and no context is produced
    - Pinned contexts trust exactly one anchor (pinned cert or accepted leaf), so a
      certificate swapped after evaluation fails the real handshake
    - A public-key pin binds the context to the leaf accepted at evaluation; a leaf
      reissued with the same key is accepted by the next client built, which
      evaluates afresh, not by one already running
    - The probe handshake is bounded by handshake_timeout

Design Decisions:
    - stdlib ssl has no per-connection verify callback; an unverified probe fetches
      the leaf, the pure evaluate_chain() decides, and OpenSSL enforces the result
      through VERIFY_X509_PARTIAL_CHAIN on every pooled connection
    - fetch_chain is injectable so the decision path is testable without sockets
"""

import asyncio
import contextlib
import logging
import ssl
from collections.abc import Awaitable, Callable, Sequence

from pvelink.core.errors import (
    ConfigurationError, ErrorContext, TlsTrustError, TransportError,
)
from pvelink.core.trust_policy import (
    Pinned, SystemDefault, TrustDecision, TrustPolicy, evaluate_chain,
)

logger = logging.getLogger(__name__)

DEFAULT_HANDSHAKE_TIMEOUT = 10.0

ChainFetcher = Callable[[str, int], Awaitable[list[bytes]]]


async def fetch_peer_chain(
    host: str, port: int, timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
) -> list[bytes]:
    """Unverified handshake returning the server leaf certificate (DER).

    Only used to feed a pin evaluation; nothing is sent over this connection.
    """
    probe = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    probe.check_hostname = False
    probe.verify_mode = ssl.CERT_NONE  # nosec B501: result is checked against the pin
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(
                host, port, ssl=probe, server_hostname=host,
            ),
            timeout,
        )
    except (OSError, asyncio.TimeoutError) as e:
        raise TransportError(
            f"TLS probe to {host}:{port} failed: {e!r}",
            "TLS_PROBE_FAILED", ErrorContext(host=host),
        ) from e

    try:
        ssl_object = writer.get_extra_info("ssl_object")
        der = ssl_object.getpeercert(binary_form=True) if ssl_object else None
    finally:
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
    return [der] if der else []


class TrustEvaluator:
    """Applies one fixed TrustPolicy to the transport's TLS handshakes."""

    def __init__(
        self,
        policy: TrustPolicy,
        *,
        fetch_chain: ChainFetcher | None = None,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
    ):
        self._policy = policy
        self._handshake_timeout = handshake_timeout
        self._fetch_chain = fetch_chain or self._probe

    @property
    def policy(self) -> TrustPolicy:
        return self._policy

    def evaluate(self, chain: Sequence[bytes], hostname: str) -> TrustDecision:
        return evaluate_chain(self._policy, chain, hostname)

    async def ssl_context_for(self, host: str, port: int) -> ssl.SSLContext:
        """SSLContext for connections to host:port. Raises TlsTrustError on rejection."""
        if isinstance(self._policy, SystemDefault):
            return self._system_context(self._policy)

        chain = await self._fetch_chain(host, port)
        decision = self.evaluate(chain, host)
        if not decision.accepted:
            logger.error(
                f"TLS pin rejected for {host}:{port}: {decision.reason}",
                extra={"host": host, "error_code": "TLS_TRUST_REJECTED"},
            )
            raise TlsTrustError(decision.reason, ErrorContext(host=host))

        logger.info(
            f"TLS pin accepted for {host}:{port} ({decision.reason})",
            extra={"host": host},
        )
        return self._pinned_context(
            self._policy, self._policy.anchor_der or chain[0],
        )

    async def _probe(self, host: str, port: int) -> list[bytes]:
        return await fetch_peer_chain(host, port, self._handshake_timeout)

    @staticmethod
    def _system_context(policy: SystemDefault) -> ssl.SSLContext:
        ctx = ssl.create_default_context()
        if policy.ca_file is None:
            return ctx
        try:
            ctx.load_verify_locations(cafile=policy.ca_file)
            return ctx
        except (OSError, ssl.SSLError) as e:
            raise ConfigurationError(
                f"CA bundle {policy.ca_file!r} could not be loaded: {e}",
                "ca_file",
            ) from e

    @staticmethod
    def _pinned_context(policy: Pinned, anchor_der: bytes) -> ssl.SSLContext:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2
        ctx.load_verify_locations(cadata=anchor_der)
        ctx.verify_flags |= ssl.VERIFY_X509_PARTIAL_CHAIN
        if policy.allow_hostname_mismatch:
            ctx.check_hostname = False
        return ctx
