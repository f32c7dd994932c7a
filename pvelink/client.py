"""Proxmox Client — assembles the layers once, in dependency order.

Invariants:
    - Construction order: TrustEvaluator -> TransportClient -> SessionManager -> ProxmoxApi
    - The trust policy is fixed for the lifetime of the client
    - aclose() logs out and releases pooled connections; the client is unusable after

Design Decisions:
    - Explicit constructor injection: tests swap the httpx transport, the chain
      fetcher and the clock without touching any layer's internals
"""

import logging

import httpx

from pvelink.config import Settings, get_settings
from pvelink.core.domain_types import AuthState
from pvelink.core.errors import ConfigurationError
from pvelink.core.session_state import Credentials, Session
from pvelink.infrastructure.transport_client import DEFAULT_USER_AGENT, TransportClient
from pvelink.infrastructure.trust_evaluator import ChainFetcher, TrustEvaluator
from pvelink.services.api_surface import ProxmoxApi
from pvelink.services.session_manager import Clock, SessionManager

logger = logging.getLogger(__name__)


class ProxmoxClient:
    """One Proxmox VE endpoint, one trust policy, one session."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        fetch_chain: ChainFetcher | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings or get_settings()
        self.trust = TrustEvaluator(
            self._settings.trust_policy(),
            fetch_chain=fetch_chain,
            handshake_timeout=self._settings.handshake_timeout_seconds,
        )
        self.transport = TransportClient(
            self._settings.base_url,
            self.trust,
            api_prefix=self._settings.api_prefix,
            timeout=self._settings.timeout(),
            limits=self._settings.limits(),
            user_agent=self._settings.user_agent or DEFAULT_USER_AGENT,
            transport=transport,
        )
        self.sessions = SessionManager(
            self.transport, self._settings.auth_config(), clock=clock,
        )
        self.api = ProxmoxApi(self.transport, self.sessions)

    @property
    def auth_state(self) -> AuthState:
        return self.sessions.state

    async def login(self, credentials: Credentials | None = None) -> Session:
        """Authenticate with `credentials`, or the ones in settings."""
        credentials = credentials or self._settings.credentials()
        if credentials is None:
            raise ConfigurationError(
                "No credentials given and none configured (PVE_USERNAME)", "username",
            )
        return await self.sessions.authenticate(credentials)

    async def logout(self) -> None:
        await self.sessions.logout()

    async def aclose(self) -> None:
        if self.transport.closed:
            return
        await self.sessions.logout()
        await self.transport.aclose()
        logger.info("Client closed", extra={"host": self.transport.host})

    async def __aenter__(self) -> "ProxmoxClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
