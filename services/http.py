"""Small JSON-over-HTTP helper shared by the REST-based service clients."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Mapping
from urllib import error, request

from diagnostics.errors import best_error_message


@dataclass(frozen=True)
class HttpResponse:
    """Decoded HTTP response."""

    method: str
    url: str
    status: int
    body: Any
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpStatusError(Exception):
    """Raised for a non-2xx response when the caller asks for it."""

    def __init__(self, response: HttpResponse) -> None:
        self.response = response
        self.message = best_error_message(response.body)
        super().__init__(f"HTTP {response.status} from {response.method} {response.url}: {self.message}")


def _decode(raw: bytes) -> Any:
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def request_json(
    method: str,
    url: str,
    *,
    body: Any = None,
    headers: Mapping[str, str] | None = None,
    timeout_s: float = 30.0,
) -> HttpResponse:
    """Send a request with an optional JSON body and decode the JSON reply.

    Non-2xx replies are returned, not raised; use ``raise_for_status``.
    """

    data = json.dumps(body).encode("utf-8") if body is not None else None
    req = request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json", **dict(headers or {})},
        method=method,
    )
    try:
        with request.urlopen(req, timeout=timeout_s) as response:
            status = response.status
            raw = response.read()
            response_headers = dict(response.headers.items())
    except error.HTTPError as exc:
        status = exc.code
        raw = exc.read()
        response_headers = dict(exc.headers.items()) if exc.headers is not None else {}
    return HttpResponse(
        method=method,
        url=url,
        status=status,
        body=_decode(raw),
        headers=response_headers,
    )


def raise_for_status(response: HttpResponse) -> HttpResponse:
    if not response.ok:
        raise HttpStatusError(response)
    return response
