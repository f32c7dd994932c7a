"""Error Hierarchy — typed, categorized exceptions for every pvelink failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - TlsTrustError and AuthError are terminal for the call that raised them
    - TransportError is the only kind the transport may retry (GET, once)
    - ApiStatusError and DecodeError are distinct: server said no vs. payload drift
    - No secret material (tickets, passwords) is ever placed in a message

Design Decisions:
    - Single hierarchy with PveLinkError base: callers catch one type or a precise subclass
    - ErrorContext as dataclass: request coordinates travel with the error, not in logs only
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and caller handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories, one per failure kind."""
    TLS_TRUST = "tls_trust"
    TRANSPORT = "transport"
    AUTHENTICATION = "authentication"
    API_STATUS = "api_status"
    DECODE = "decode"
    CONFIGURATION = "configuration"


@dataclass
class ErrorContext:
    """Request coordinates attached to an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    operation: str | None = None
    method: str | None = None
    path: str | None = None
    host: str | None = None
    attempt: int | None = None
    debug_info: dict[str, Any] | None = None


class PveLinkError(Exception):
    """Base exception for all pvelink errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    def to_dict(self) -> dict:
        """Structured representation for JSON output and logging."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "operation": self.context.operation,
                    "method": self.context.method,
                    "path": self.context.path,
                    "host": self.context.host,
                    "attempt": self.context.attempt,
                },
            }
        }


# ─── TLS ─────────────────────────────────────────────────────────

class TlsTrustError(PveLinkError):
    """Server certificate chain rejected by the trust policy."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"TLS trust rejected: {reason}",
            "TLS_TRUST_REJECTED", ErrorCategory.TLS_TRUST,
            ErrorSeverity.CRITICAL, context,
        )
        self.reason = reason


# ─── Transport ───────────────────────────────────────────────────

class TransportError(PveLinkError):
    """Connection-level failure: connect, timeout, reset, closed client."""
    def __init__(
        self, message: str, code: str = "TRANSPORT_FAILED",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.TRANSPORT,
            ErrorSeverity.ERROR, context,
        )


# ─── Authentication ──────────────────────────────────────────────

class AuthError(PveLinkError):
    """Login failed or the session cannot be (re)established."""
    def __init__(
        self,
        message: str,
        code: str = "AUTH_FAILED",
        credentials_rejected: bool = False,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.AUTHENTICATION,
            ErrorSeverity.ERROR, context,
        )
        self.credentials_rejected = credentials_rejected


# ─── Server responses ────────────────────────────────────────────

class ApiStatusError(PveLinkError):
    """Server answered with a non-success HTTP status."""
    def __init__(
        self,
        status_code: int,
        server_message: str,
        errors: dict[str, str] | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"API returned HTTP {status_code}: {server_message}",
            "API_STATUS_ERROR", ErrorCategory.API_STATUS,
            ErrorSeverity.ERROR, context,
        )
        self.status_code = status_code
        self.server_message = server_message
        self.errors = errors or {}

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["error"]["status"] = self.status_code
        if self.errors:
            result["error"]["errors"] = self.errors
        return result


class DecodeError(PveLinkError):
    """Response payload does not have the expected shape."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Unexpected response payload: {message}",
            "DECODE_ERROR", ErrorCategory.DECODE,
            ErrorSeverity.ERROR, context,
        )


# ─── Configuration ───────────────────────────────────────────────

class ConfigurationError(PveLinkError):
    """Invalid trust policy, credentials or settings."""
    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message, "CONFIGURATION_ERROR", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL,
        )
        self.field = field
