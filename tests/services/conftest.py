"""Service test fixtures — transport + session manager wired to the fake Proxmox app.

Invariants:
    - Real TransportClient over httpx.ASGITransport: retry and error mapping are
      exercised for real, only the socket is replaced
    - StubTransport (stub_transport.py) replaces the TransportClient where a test
      needs to hold a request in flight (cancellation, single-flight ordering)
"""

import pytest

from pvelink.core.session_state import AuthConfig, Credentials
from pvelink.core.trust_policy import SystemDefault
from pvelink.infrastructure.transport_client import TransportClient
from pvelink.infrastructure.trust_evaluator import TrustEvaluator
from pvelink.services.api_surface import ProxmoxApi
from pvelink.services.session_manager import SessionManager

BASE_URL = "https://pve1.lab.example:8006"


@pytest.fixture
def credentials() -> Credentials:
    return Credentials("root", "s3cret", realm="pam")


@pytest.fixture
def transport_client(pve_transport) -> TransportClient:
    return TransportClient(BASE_URL, TrustEvaluator(SystemDefault()), transport=pve_transport)


@pytest.fixture
def sessions(transport_client, clock) -> SessionManager:
    return SessionManager(transport_client, AuthConfig(), clock=clock)


@pytest.fixture
def api(transport_client, sessions) -> ProxmoxApi:
    return ProxmoxApi(transport_client, sessions)


@pytest.fixture
async def logged_in_api(api, sessions, credentials) -> ProxmoxApi:
    await sessions.authenticate(credentials)
    return api
