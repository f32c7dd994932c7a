"""Client Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables or the caller (never hardcoded)
    - base_url must be https://; plain http is refused at load time
    - get_settings() is cached (lru_cache): one instance per process
    - Settings only describe; trust_policy()/credentials()/auth_config() build the
      immutable values the client layers are constructed with

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - env prefix PVE_: PVE_BASE_URL, PVE_PINNED_FINGERPRINT, PVE_PASSWORD...
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

import httpx
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pvelink.core.domain_types import AuthScheme, FingerprintKind, TrustMode
from pvelink.core.errors import ConfigurationError
from pvelink.core.session_state import AuthConfig, Credentials
from pvelink.core.trust_policy import Pinned, SystemDefault, TrustPolicy


class Settings(BaseSettings):
    """pvelink settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PVE_", env_file=".env", case_sensitive=False, extra="ignore",
    )

    # Endpoint
    base_url: str = "https://localhost:8006"
    api_prefix: str = "/api2/json"
    user_agent: str | None = None

    @field_validator("base_url")
    @classmethod
    def require_https(cls, v: str) -> str:
        if not v.lower().startswith("https://"):
            raise ValueError("base_url must use https://")
        return v.rstrip("/")

    # TLS trust
    trust_mode: TrustMode = TrustMode.SYSTEM
    ca_bundle: Path | None = None
    pinned_fingerprint: str | None = None
    pinned_certificate: Path | None = None
    pin_kind: FingerprintKind = FingerprintKind.CERTIFICATE
    allow_hostname_mismatch: bool = False
    handshake_timeout_seconds: float = 10.0

    # Timeouts / pool
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 30.0
    write_timeout_seconds: float = 30.0
    pool_timeout_seconds: float = 10.0
    max_connections: int = 10
    max_keepalive_connections: int = 5

    # Credentials
    username: str | None = None
    realm: str = "pam"
    password: SecretStr | None = None
    token_id: str | None = None
    token_secret: SecretStr | None = None
    auth_scheme: AuthScheme = AuthScheme.TICKET

    # Auth wire names (vary across API versions)
    login_path: str = "/access/ticket"
    verify_path: str = "/version"
    ticket_field: str = "ticket"
    csrf_field: str = "CSRFPreventionToken"
    cookie_name: str = "PVEAuthCookie"
    csrf_header: str = "CSRFPreventionToken"
    token_header: str = "Authorization"
    token_prefix: str = "PVEAPIToken"
    session_lifetime_seconds: int = 7200
    clock_skew_seconds: int = 60

    @field_validator(
        "connect_timeout_seconds", "read_timeout_seconds", "write_timeout_seconds",
        "pool_timeout_seconds", "handshake_timeout_seconds",
    )
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    # ─── Builders ────────────────────────────────────────────────

    def trust_policy(self) -> TrustPolicy:
        if self.trust_mode is TrustMode.SYSTEM:
            return SystemDefault(
                ca_file=str(self.ca_bundle) if self.ca_bundle else None,
            )

        certificate_pem = None
        if self.pinned_certificate is not None:
            try:
                certificate_pem = self.pinned_certificate.read_text(encoding="ascii")
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigurationError(
                    f"Pinned certificate {str(self.pinned_certificate)!r} "
                    f"could not be read: {e}",
                    "pinned_certificate",
                ) from e
        return Pinned(
            fingerprint=self.pinned_fingerprint,
            certificate_pem=certificate_pem,
            kind=self.pin_kind,
            allow_hostname_mismatch=self.allow_hostname_mismatch,
        )

    def credentials(self) -> Credentials | None:
        """Configured login material, or None when no username is set."""
        if not self.username:
            return None
        if self.auth_scheme is AuthScheme.API_TOKEN:
            if not self.token_id:
                raise ConfigurationError(
                    "API token authentication requires PVE_TOKEN_ID", "token_id",
                )
            if self.token_secret is None:
                raise ConfigurationError(
                    "API token authentication requires PVE_TOKEN_SECRET", "token_secret",
                )
            return Credentials(
                username=self.username,
                secret=self.token_secret.get_secret_value(),
                realm=self.realm,
                token_id=self.token_id,
            )
        if self.password is None:
            raise ConfigurationError(
                "Ticket authentication requires PVE_PASSWORD", "password",
            )
        return Credentials(
            username=self.username,
            secret=self.password.get_secret_value(),
            realm=self.realm,
        )

    def auth_config(self) -> AuthConfig:
        return AuthConfig(
            scheme=self.auth_scheme,
            login_path=self.login_path,
            verify_path=self.verify_path,
            ticket_field=self.ticket_field,
            csrf_field=self.csrf_field,
            cookie_name=self.cookie_name,
            csrf_header=self.csrf_header,
            token_header=self.token_header,
            token_prefix=self.token_prefix,
            ticket_lifetime=timedelta(seconds=self.session_lifetime_seconds),
            clock_skew=timedelta(seconds=self.clock_skew_seconds),
        )

    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.connect_timeout_seconds,
            read=self.read_timeout_seconds,
            write=self.write_timeout_seconds,
            pool=self.pool_timeout_seconds,
        )

    def limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_keepalive_connections,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
