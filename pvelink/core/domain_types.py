"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - NodeName, VmId and Upid wrap the primitives Proxmox uses for them
    - All valid states encoded as Enums, no raw string matching
    - GuestAction.RESET is valid for QEMU guests only

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: values are the literal path segments / wire values
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

NodeName = NewType("NodeName", str)
VmId = NewType("VmId", int)
Upid = NewType("Upid", str)   # task id returned by asynchronous mutating calls
UserId = NewType("UserId", str)   # name@realm


# ─── Enums ───────────────────────────────────────────────────────

class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @property
    def is_mutating(self) -> bool:
        """Mutating methods carry the CSRF header under ticket auth."""
        return self is not HttpMethod.GET


class AuthState(str, Enum):
    """Observable session lifecycle states."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class AuthScheme(str, Enum):
    """How the client proves identity to the control plane."""
    TICKET = "ticket"       # POST /access/ticket, cookie + CSRF header
    API_TOKEN = "token"     # static Authorization header, no expiry


class TrustMode(str, Enum):
    SYSTEM = "system"
    PINNED = "pinned"


class FingerprintKind(str, Enum):
    """What a pinned fingerprint is computed over."""
    CERTIFICATE = "certificate"   # SHA-256 of the DER certificate
    PUBLIC_KEY = "public_key"     # SHA-256 of the DER SubjectPublicKeyInfo


class GuestType(str, Enum):
    """Guest kinds; the value is the API path segment."""
    QEMU = "qemu"
    LXC = "lxc"


class GuestAction(str, Enum):
    """Power actions under /status/{action}."""
    START = "start"
    STOP = "stop"
    SHUTDOWN = "shutdown"
    REBOOT = "reboot"
    RESET = "reset"
    SUSPEND = "suspend"
    RESUME = "resume"

    def supported_by(self, guest_type: GuestType) -> bool:
        return not (self is GuestAction.RESET and guest_type is GuestType.LXC)


class RrdTimeframe(str, Enum):
    """Window of the round-robin metric series under .../rrddata."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class BackupMode(str, Enum):
    """vzdump consistency mode."""
    SNAPSHOT = "snapshot"
    SUSPEND = "suspend"
    STOP = "stop"


class BackupCompression(str, Enum):
    NONE = "0"
    GZIP = "gzip"
    LZO = "lzo"
    ZSTD = "zstd"
