"""Session Manager — login exchange, ticket caching, expiry and single-flight refresh.

Invariants:
    - State machine: unauthenticated -> authenticating -> authenticated, and back to
      unauthenticated on logout, failed login, cancelled login or failed refresh
    - attach() never returns a request without auth headers (fail-closed)
    - An expired session causes exactly one re-authentication, shared by every
      caller that observed the expiry while it was in flight (success or failure)
    - Reading a valid session takes no lock
    - Login failures surface as AuthError and are never retried here;
      TlsTrustError propagates unchanged
    - Credentials the server rejected (401/403) are forgotten
    - invalidate(rejected) only drops the session the rejected request carried;
      a stale 401 never discards a newer session

Design Decisions:
    - asyncio.Lock + refresh generation counter: waiters compare the generation they
      observed with the current one to tell "someone refreshed for me" from "my turn"
    - Cancellation is handled in the same except path as failure, so the lock is
      released by `async with` and the state cannot stay in authenticating
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from pvelink.core.api_request import ApiRequest
from pvelink.core.domain_types import AuthScheme, AuthState, HttpMethod
from pvelink.core.errors import (
    ApiStatusError, AuthError, ErrorContext, PveLinkError, TransportError,
)
from pvelink.core.session_state import (
    AuthConfig, Credentials, Session, api_token_value, auth_headers,
)
from pvelink.infrastructure.transport_client import TransportClient

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Owns the one Session of a client instance."""

    def __init__(
        self,
        transport: TransportClient,
        config: AuthConfig | None = None,
        *,
        clock: Clock | None = None,
    ):
        self._transport = transport
        self._config = config or AuthConfig()
        self._clock = clock or _utcnow
        self._lock = asyncio.Lock()
        self._state = AuthState.UNAUTHENTICATED
        self._session: Session | None = None
        self._credentials: Credentials | None = None
        self._generation = 0
        self._last_failure: PveLinkError | None = None

    # ─── Observable state ────────────────────────────────────────

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def config(self) -> AuthConfig:
        return self._config

    # ─── Public operations ───────────────────────────────────────

    async def authenticate(self, credentials: Credentials) -> Session:
        """Log in with `credentials`, replacing any current session."""
        async with self._lock:
            return await self._login(credentials)

    async def ensure_session(self) -> Session:
        """Current valid session, refreshing a missing or expired one first."""
        session = self._session
        if (
            session is None
            or self._state is not AuthState.AUTHENTICATED
            or session.is_expired(self._clock(), self._config.clock_skew)
        ):
            session = await self._refresh()
        return session

    async def attach(self, request: ApiRequest) -> ApiRequest:
        """Return `request` with auth headers, refreshing an expired session first."""
        return self.apply(await self.ensure_session(), request)

    def apply(self, session: Session, request: ApiRequest) -> ApiRequest:
        return request.with_headers(
            auth_headers(session, request.method, self._config),
        )

    async def logout(self) -> None:
        """Drop session and credentials. Proxmox tickets are stateless: nothing to call."""
        async with self._lock:
            self._reset(forget_credentials=True)
        logger.info("Logged out", extra={"auth_state": self._state.value})

    def invalidate(self, rejected: Session | None = None) -> bool:
        """Server rejected `rejected`; drop it if still current, keep credentials.

        Returns True when the session was dropped. A 401 for a ticket that a
        concurrent refresh already replaced, or one arriving while a login is in
        flight, leaves the current session alone.
        """
        if self._state is AuthState.AUTHENTICATING:
            return False
        if rejected is not None and self._session is not rejected:
            logger.debug(
                "Stale session rejected by server, current session kept",
                extra={"auth_state": self._state.value},
            )
            return False
        if self._session is not None:
            logger.warning(
                "Session rejected by server, will re-authenticate on next request",
                extra={"auth_state": AuthState.UNAUTHENTICATED.value},
            )
        self._session = None
        self._state = AuthState.UNAUTHENTICATED
        return True

    # ─── Internals ───────────────────────────────────────────────

    async def _refresh(self) -> Session:
        observed = self._generation
        async with self._lock:
            if self._generation != observed:
                # another caller finished a refresh while we waited: share its outcome
                if self._last_failure is not None:
                    raise AuthError(
                        f"Re-authentication failed: {self._last_failure.message}",
                        "REAUTH_FAILED",
                    ) from self._last_failure
                if self._session is not None:
                    return self._session

            session = self._session
            if (
                session is not None
                and self._state is AuthState.AUTHENTICATED
                and not session.is_expired(self._clock(), self._config.clock_skew)
            ):
                return session

            if self._credentials is None:
                raise AuthError("Not authenticated", "NOT_AUTHENTICATED")

            logger.info(
                "Session missing or expired, re-authenticating",
                extra={"auth_state": self._state.value},
            )
            return await self._login(self._credentials)

    async def _login(self, credentials: Credentials) -> Session:
        """Runs under self._lock."""
        self._state = AuthState.AUTHENTICATING
        try:
            session = await self._exchange(credentials)
        except AuthError as e:
            self._reset(forget_credentials=e.credentials_rejected)
            self._record(e)
            logger.error(
                f"Authentication failed for {credentials.userid}: {e.message}",
                extra={"error_code": e.code, "auth_state": self._state.value},
            )
            raise
        except PveLinkError as e:
            self._reset()
            self._record(e)
            raise
        except BaseException:
            # cancellation: nothing completed, waiters get their own attempt
            self._reset()
            raise

        self._session = session
        self._credentials = credentials
        self._state = AuthState.AUTHENTICATED
        self._record(None)
        logger.info(
            f"Authenticated as {credentials.userid}",
            extra={"auth_state": self._state.value},
        )
        return session

    def _record(self, failure: PveLinkError | None) -> None:
        self._generation += 1
        self._last_failure = failure

    def _reset(self, forget_credentials: bool = False) -> None:
        self._session = None
        self._state = AuthState.UNAUTHENTICATED
        if forget_credentials:
            self._credentials = None

    async def _exchange(self, credentials: Credentials) -> Session:
        if self._config.scheme is AuthScheme.API_TOKEN:
            return await self._verify_token(credentials)
        return await self._request_ticket(credentials)

    async def _request_ticket(self, credentials: Credentials) -> Session:
        request = ApiRequest(
            operation="login",
            method=HttpMethod.POST,
            path=self._config.login_path,
            body={
                "username": credentials.username,
                "password": credentials.secret,
                "realm": credentials.realm,
            },
        )
        issued_at = self._clock()
        try:
            raw = await self._transport.send(request)
            payload = raw.json()
        except (ApiStatusError, TransportError) as e:
            raise _login_failure(e) from e
        except ValueError as e:
            raise AuthError(
                "Login response is not JSON", "LOGIN_RESPONSE_INVALID",
            ) from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            # older releases answer bad credentials with 200 + data: null
            raise AuthError(
                "Invalid username or password",
                "INVALID_CREDENTIALS", credentials_rejected=True,
            )
        if data.get("NeedTFA"):
            raise AuthError(
                "Two-factor authentication required", "TFA_REQUIRED",
            )
        ticket = data.get(self._config.ticket_field)
        if not isinstance(ticket, str) or not ticket:
            raise AuthError(
                "Received empty authentication ticket", "LOGIN_RESPONSE_INVALID",
            )

        csrf = data.get(self._config.csrf_field)
        return Session(
            token=ticket,
            csrf_token=csrf if isinstance(csrf, str) and csrf else None,
            issued_at=issued_at,
            expires_at=issued_at + self._config.ticket_lifetime,
            username=data.get("username") or credentials.userid,
        )

    async def _verify_token(self, credentials: Credentials) -> Session:
        token = api_token_value(credentials, self._config)
        request = ApiRequest(
            operation="verify_token",
            method=HttpMethod.GET,
            path=self._config.verify_path,
            headers={self._config.token_header: token},
        )
        try:
            await self._transport.send(request)
        except (ApiStatusError, TransportError) as e:
            raise _login_failure(e) from e
        return Session(
            token=token,
            issued_at=self._clock(),
            username=credentials.userid,
        )


def _login_failure(error: PveLinkError) -> AuthError:
    context = error.context if isinstance(error.context, ErrorContext) else None
    if isinstance(error, ApiStatusError):
        if error.status_code == 401:
            return AuthError(
                "Invalid username or password", "INVALID_CREDENTIALS",
                credentials_rejected=True, context=context,
            )
        if error.status_code == 403:
            return AuthError(
                "Access forbidden, check user permissions", "ACCESS_FORBIDDEN",
                credentials_rejected=True, context=context,
            )
        return AuthError(
            f"Authentication failed: HTTP {error.status_code} {error.server_message}",
            "LOGIN_HTTP_ERROR", context=context,
        )
    return AuthError(
        f"Authentication failed: {error.message}",
        "LOGIN_TRANSPORT_FAILED", context=context,
    )
