"""HTTP transport used by the live command dispatcher.

The transport performs one request and returns status, headers and body.
It never interprets the status: classification belongs to the dispatcher.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from stowaway.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class HttpRequest:
    """A request relative to the storage URL.

    Attributes:
        method: HTTP method.
        path: Path below the storage URL ("" for the account).
        headers: Request headers (the token is added by the dispatcher).
        params: Query parameters; None values are dropped.
        body: Request body, if any.
    """

    method: str
    path: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str | None] = field(default_factory=dict)
    body: bytes | None = None


@dataclass
class HttpResponse:
    """Status, headers (lower-cased names) and body of a response."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class HttpTransport(Protocol):
    """Sends a single HTTP request."""

    def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str | None] | None = None,
        body: bytes | None = None,
    ) -> HttpResponse:
        """Send the request.

        Raises:
            TransportError: If no response was received.
        """
        ...

    def close(self) -> None:
        """Release pooled connections."""
        ...


class HttpxTransport:
    """Transport backed by a pooled ``httpx.Client``.

    Attributes:
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
        """
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str | None] | None = None,
        body: bytes | None = None,
    ) -> HttpResponse:
        query = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            response = self._client.request(
                method,
                url,
                headers=headers,
                params=query,
                content=body,
            )
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        return HttpResponse(
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=response.content,
        )

    def close(self) -> None:
        self._client.close()
