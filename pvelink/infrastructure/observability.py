"""Request Logging — JSON records for Proxmox API traffic, with credential scrubbing.

Invariants:
    - Every record carries timestamp (event time, UTC), level, logger and message
    - Request fields (operation, method, path, host, status_code, attempt,
      elapsed_ms) and session fields (auth_state, error_code) appear when set;
      any other `extra=` key is dropped
    - Ticket cookies, CSRF tokens and API token secrets never reach the output,
      even when an exception message or a server reply echoes them
    - Importing pvelink configures nothing; setup_logging() is opt-in (the CLI
      calls it) and only touches the "pvelink" logger

Design Decisions:
    - Scrubbing happens in the formatter, after message interpolation, so both
      f-string messages and tracebacks pass through the same filter
    - httpx/httpcore are held at WARNING: their DEBUG output includes raw headers
"""

import json
import logging
import re
from datetime import datetime, timezone

REQUEST_FIELDS = (
    "operation", "method", "path", "host", "status_code", "attempt", "elapsed_ms",
)
SESSION_FIELDS = ("auth_state", "error_code")

_SECRET_PATTERNS = (
    re.compile(r"(PVEAuthCookie=)[^;\s\"']+"),
    re.compile(r"(CSRFPreventionToken[\"']?\s*[:=]\s*[\"']?)[^;\s\"',}]+"),
    re.compile(r"(PVEAPIToken=[^=\s\"']+=)[^;\s\"']+"),
)
_REDACTED = "***"

_NOISY_LOGGERS = ("httpx", "httpcore")


def scrub(text: str) -> str:
    """Mask ticket, CSRF and API token values inside `text`."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(rf"\g<1>{_REDACTED}", text)
    return text


class JSONFormatter(logging.Formatter):
    """One JSON object per record, request and session fields lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": scrub(record.getMessage()),
        }
        for key in REQUEST_FIELDS + SESSION_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = scrub(self.formatException(record.exc_info))
        return json.dumps(log, ensure_ascii=False, default=str)


class _ScrubbingTextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return scrub(super().format(record))


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Attach one stream handler to the "pvelink" logger. Returns the handler.

    Calling it again replaces the handler installed by the previous call.
    """
    logger = logging.getLogger("pvelink")
    for existing in list(logger.handlers):
        if getattr(existing, "_pvelink_handler", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler()
    handler._pvelink_handler = True
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(_ScrubbingTextFormatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
        ))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
