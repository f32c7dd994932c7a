"""Transport Client — one pooled httpx.AsyncClient under a fixed TLS policy.

Invariants:
    - The AsyncClient is built once (under a lock) from the TrustEvaluator's context
      and never reconfigured; each TransportClient owns its own pool
    - Connect/read/write/pool timeouts always set (defaults below)
    - GET: exactly one immediate retry on TransportError; never on ApiStatusError
      or TlsTrustError. POST/PUT/DELETE: never retried
    - Non-2xx responses raise ApiStatusError with the server's message
    - Handshake verification failures map to TlsTrustError, not TransportError

Design Decisions:
    - Wrapper over raw httpx: retry rule and error mapping live in one place,
      the session manager and API surface only see pvelink errors
    - Auth headers arrive pre-attached on the ApiRequest; the transport never
      reads session state
"""

import asyncio
import logging
import ssl
import time

import httpx

from pvelink import __version__
from pvelink.core.api_request import ApiRequest, RawResponse
from pvelink.core.decode_response import error_details
from pvelink.core.errors import (
    ApiStatusError, ConfigurationError, ErrorContext, PveLinkError,
    TlsTrustError, TransportError,
)
from pvelink.infrastructure.trust_evaluator import TrustEvaluator

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 30.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_POOL_TIMEOUT = 10.0
DEFAULT_TIMEOUT = httpx.Timeout(
    connect=DEFAULT_CONNECT_TIMEOUT,
    read=DEFAULT_READ_TIMEOUT,
    write=DEFAULT_WRITE_TIMEOUT,
    pool=DEFAULT_POOL_TIMEOUT,
)
DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)
DEFAULT_API_PREFIX = "/api2/json"
DEFAULT_USER_AGENT = f"pvelink/{__version__}"
DEFAULT_PORT = 8006


def _is_certificate_failure(exc: BaseException) -> bool:
    """True if an ssl certificate verification error sits anywhere in the cause chain."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, ssl.SSLCertVerificationError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return "CERTIFICATE_VERIFY_FAILED" in str(exc)


def _transport_code(exc: httpx.TransportError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "TIMEOUT"
    if isinstance(exc, httpx.ConnectError):
        return "CONNECT_FAILED"
    return "TRANSPORT_FAILED"


class TransportClient:
    """Sends ApiRequests over HTTPS under one TrustEvaluator."""

    def __init__(
        self,
        base_url: str,
        trust: TrustEvaluator,
        *,
        api_prefix: str = DEFAULT_API_PREFIX,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        limits: httpx.Limits = DEFAULT_LIMITS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        url = httpx.URL(base_url)
        if url.scheme != "https" or not url.host:
            raise ConfigurationError(
                f"base_url must be an https:// URL, got {base_url!r}", "base_url",
            )
        self._base_url = str(url).rstrip("/")
        self._host = url.host
        self._port = url.port or DEFAULT_PORT
        self._trust = trust
        self._api_prefix = "/" + api_prefix.strip("/")
        self._timeout = timeout
        self._limits = limits
        self._user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._closed = False

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, request: ApiRequest) -> RawResponse:
        """Send once; GET gets a single immediate retry on connection failure."""
        try:
            return await self._send_once(request, 1)
        except TransportError as e:
            if not request.retriable or self._closed:
                raise
            logger.warning(
                f"Transport error on {request.method.value} {request.path}, "
                f"retrying once: {e.message}",
                extra={
                    "operation": request.operation,
                    "attempt": 1,
                    "error_code": e.code,
                },
            )
        return await self._send_once(request, 2)

    async def aclose(self) -> None:
        """Close pooled connections. Further sends raise TransportError."""
        self._closed = True
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def _send_once(self, request: ApiRequest, attempt: int) -> RawResponse:
        context = ErrorContext(
            operation=request.operation,
            method=request.method.value,
            path=request.path,
            host=self._host,
            attempt=attempt,
        )
        client = await self._ensure_client(context)

        started = time.monotonic()
        try:
            response = await client.request(
                request.method.value,
                self._api_prefix + request.path,
                params=request.params,
                json=request.body,
                headers=request.headers,
            )
        except httpx.TransportError as e:
            if _is_certificate_failure(e):
                raise TlsTrustError(
                    f"handshake verification failed: {e}", context,
                ) from e
            raise TransportError(
                f"{type(e).__name__}: {e}", _transport_code(e), context,
            ) from e
        elapsed_ms = int((time.monotonic() - started) * 1000)

        raw = RawResponse(
            status_code=response.status_code,
            content=response.content,
            reason_phrase=response.reason_phrase,
            headers=dict(response.headers),
        )
        logger.info(
            f"{request.method.value} {request.path} -> {raw.status_code}",
            extra={
                "operation": request.operation,
                "method": request.method.value,
                "path": request.path,
                "status_code": raw.status_code,
                "attempt": attempt,
                "elapsed_ms": elapsed_ms,
            },
        )
        if not raw.ok:
            message, errors = error_details(raw)
            raise ApiStatusError(raw.status_code, message, errors, context)
        return raw

    async def _ensure_client(self, context: ErrorContext) -> httpx.AsyncClient:
        if self._closed:
            raise TransportError(
                "Transport client is closed", "CLIENT_CLOSED", context,
            )
        if self._client is not None:
            return self._client
        async with self._client_lock:
            if self._client is None:
                try:
                    ssl_context = await self._trust.ssl_context_for(
                        self._host, self._port,
                    )
                except PveLinkError as e:
                    e.context.operation = context.operation
                    e.context.method = context.method
                    e.context.path = context.path
                    e.context.attempt = context.attempt
                    raise
                self._client = self._build_client(ssl_context)
            return self._client

    def _build_client(self, ssl_context: ssl.SSLContext) -> httpx.AsyncClient:
        transport = self._transport or httpx.AsyncHTTPTransport(
            verify=ssl_context, limits=self._limits, retries=0,
        )
        return httpx.AsyncClient(
            base_url=self._base_url,
            transport=transport,
            timeout=self._timeout,
            headers={
                "Accept": "application/json",
                "User-Agent": self._user_agent,
            },
            follow_redirects=False,
        )
