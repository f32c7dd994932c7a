"""API Request / Response values and declarative Operation definitions. Pure, no IO.

Invariants:
    - ApiRequest is immutable; header injection returns a new request
    - Path parameters are URL-quoted (UPIDs contain ':'), never interpolated raw
    - None-valued query/body entries are dropped; booleans go on the wire as 1/0
    - Only GET requests are retriable

Design Decisions:
    - Operation is data (method + path template + response type), the API surface
      only routes; adding an endpoint means adding one Operation entry
"""

import json
import string
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import quote

from pvelink.core.domain_types import HttpMethod


@dataclass(frozen=True)
class ApiRequest:
    operation: str
    method: HttpMethod
    path: str
    params: dict[str, Any] | None = None
    body: dict[str, Any] | None = field(default=None, repr=False)
    headers: dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def retriable(self) -> bool:
        return self.method is HttpMethod.GET

    def with_headers(self, extra: Mapping[str, str]) -> "ApiRequest":
        return replace(self, headers={**self.headers, **extra})


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    content: bytes = field(repr=False)
    reason_phrase: str = ""
    headers: dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Parse the body. Raises ValueError on anything that is not JSON."""
        return json.loads(self.content)


@dataclass(frozen=True)
class Operation:
    """One logical remote call."""
    name: str
    method: HttpMethod
    path: str
    response_type: Any
    requires_auth: bool = True
    description: str = ""

    @property
    def path_params(self) -> tuple[str, ...]:
        return tuple(
            name for _, name, _, _ in string.Formatter().parse(self.path)
            if name
        )

    @property
    def retriable(self) -> bool:
        return self.method is HttpMethod.GET

    def build_request(
        self,
        params: Mapping[str, Any] | None = None,
        *,
        query: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> ApiRequest:
        params = dict(params or {})
        expected = set(self.path_params)
        missing = expected - params.keys()
        if missing:
            raise ValueError(
                f"{self.name}: missing path parameter(s) {', '.join(sorted(missing))}",
            )
        unexpected = params.keys() - expected
        if unexpected:
            raise ValueError(
                f"{self.name}: unknown path parameter(s) {', '.join(sorted(unexpected))}",
            )
        path = self.path.format(
            **{k: quote(str(params[k]), safe="") for k in expected},
        )
        return ApiRequest(
            operation=self.name,
            method=self.method,
            path=path,
            params=_wire_mapping(query),
            body=_wire_mapping(body),
        )


def _wire_mapping(values: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not values:
        return None
    out = {}
    for key, value in values.items():
        if value is None:
            continue
        out[key] = int(value) if isinstance(value, bool) else value
    return out or None
