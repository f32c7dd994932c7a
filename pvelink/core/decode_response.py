"""Response Decoding — envelope unwrapping and typed validation. Pure, no IO.

Invariants:
    - Success bodies must be JSON objects with a `data` member
    - Any shape mismatch raises DecodeError (never a default / empty value)
    - Error bodies never raise DecodeError: error_details() falls back to the reason phrase
"""

from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter, ValidationError

from pvelink.core.api_request import RawResponse
from pvelink.core.errors import DecodeError, ErrorContext


@lru_cache(maxsize=None)
def _adapter(response_type: Any) -> TypeAdapter:
    return TypeAdapter(response_type)


def decode_response(
    raw: RawResponse, response_type: Any, context: ErrorContext | None = None,
) -> Any:
    """Unwrap {"data": ...} and validate it against `response_type`."""
    try:
        payload = raw.json()
    except ValueError as e:
        raise DecodeError(f"body is not JSON ({e})", context) from e

    if not isinstance(payload, dict) or "data" not in payload:
        raise DecodeError("missing 'data' envelope", context)

    try:
        return _adapter(response_type).validate_python(payload["data"])
    except ValidationError as e:
        raise DecodeError(_summarize(e), context) from e


def _summarize(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "data"
    return f"{error.error_count()} validation error(s); {location}: {first['msg']}"


def error_details(raw: RawResponse) -> tuple[str, dict[str, str]]:
    """Best server-provided message for a failed response, plus per-field errors."""
    fallback = (raw.reason_phrase or f"HTTP {raw.status_code}").strip()
    try:
        payload = raw.json()
    except ValueError:
        return fallback, {}
    if not isinstance(payload, dict):
        return fallback, {}

    errors: dict[str, str] = {}
    if isinstance(payload.get("errors"), dict):
        errors = {
            str(k): str(v).strip() for k, v in payload["errors"].items()
        }

    for key in ("message", "data"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip(), errors

    # {"error": "..."} and {"error": {"message": "..."}} from fronting proxies
    error_field = payload.get("error")
    if isinstance(error_field, str) and error_field.strip():
        return error_field.strip(), errors
    if isinstance(error_field, dict) and error_field.get("message"):
        return str(error_field["message"]).strip(), errors

    if errors:
        detail = "; ".join(f"{k}: {v}" for k, v in errors.items())
        return f"{fallback} ({detail})", errors
    return fallback, errors
