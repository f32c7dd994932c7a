"""Session State — credentials, session value and auth header rules. Pure, no IO.

Invariants:
    - Credentials and Session never expose secrets through repr()
    - A session is expired when expires_at - skew <= now; no expiry means never expired
    - auth_headers() returns exactly one auth header set for a request
    - The CSRF header is only added to mutating requests under ticket auth

Design Decisions:
    - Frozen dataclasses: a refreshed session is a new object, readers never see a torn value
    - Header and field names live in AuthConfig because they vary across API versions
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from pvelink.core.domain_types import AuthScheme, HttpMethod
from pvelink.core.errors import ConfigurationError

DEFAULT_TICKET_LIFETIME = timedelta(hours=2)
DEFAULT_CLOCK_SKEW = timedelta(seconds=60)


@dataclass(frozen=True)
class Credentials:
    """Login material supplied by the caller. Never persisted here."""
    username: str
    secret: str = field(repr=False)
    realm: str = "pam"
    token_id: str | None = None

    def __post_init__(self):
        if not self.username.strip():
            raise ConfigurationError("Username cannot be empty", "username")
        if not self.secret:
            raise ConfigurationError("Secret cannot be empty", "secret")

    @property
    def userid(self) -> str:
        """user@realm, unless the username already names its realm."""
        if "@" in self.username:
            return self.username
        return f"{self.username}@{self.realm}"


@dataclass(frozen=True)
class Session:
    token: str = field(repr=False)
    issued_at: datetime
    expires_at: datetime | None = None
    csrf_token: str | None = field(default=None, repr=False)
    username: str | None = None

    def is_expired(self, now: datetime, skew: timedelta = DEFAULT_CLOCK_SKEW) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at - skew <= now


@dataclass(frozen=True)
class AuthConfig:
    """Target-API specific names and timings for authentication."""
    scheme: AuthScheme = AuthScheme.TICKET
    login_path: str = "/access/ticket"
    verify_path: str = "/version"
    ticket_field: str = "ticket"
    csrf_field: str = "CSRFPreventionToken"
    cookie_name: str = "PVEAuthCookie"
    csrf_header: str = "CSRFPreventionToken"
    token_header: str = "Authorization"
    token_prefix: str = "PVEAPIToken"
    ticket_lifetime: timedelta = DEFAULT_TICKET_LIFETIME
    clock_skew: timedelta = DEFAULT_CLOCK_SKEW


def api_token_value(credentials: Credentials, config: AuthConfig) -> str:
    """PVEAPIToken=user@realm!tokenid=secret"""
    if not credentials.token_id:
        raise ConfigurationError(
            "API token authentication requires a token id", "token_id",
        )
    return (
        f"{config.token_prefix}={credentials.userid}"
        f"!{credentials.token_id}={credentials.secret}"
    )


def auth_headers(
    session: Session, method: HttpMethod, config: AuthConfig,
) -> dict[str, str]:
    """The one header set that authenticates `method` under `session`."""
    if config.scheme is AuthScheme.API_TOKEN:
        return {config.token_header: session.token}

    headers = {"Cookie": f"{config.cookie_name}={session.token}"}
    if method.is_mutating and session.csrf_token:
        headers[config.csrf_header] = session.csrf_token
    return headers
