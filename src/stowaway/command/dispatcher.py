"""HTTP command executor with retry-on-reauthentication."""

import logging
import time
from typing import Any

from stowaway import metrics
from stowaway.access import AccessManager, Credential
from stowaway.command.base import Command, CommandKind
from stowaway.command.http import build_request, parse_response
from stowaway.errors import AuthenticationError, StowawayError, Unauthorized, error_for_status
from stowaway.headers import AUTH_TOKEN
from stowaway.transport import HttpRequest, HttpResponse, HttpTransport

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Executes commands as authenticated HTTP exchanges.

    Every request carries the current token.  A 401 triggers exactly one
    re-authentication and one resend of the same request; a second 401 or
    a failed re-authentication surfaces :class:`Unauthorized`.

    Attributes:
        access: The access manager holding the shared credential.
        transport: The HTTP transport.
        allow_reauthenticate: Whether a 401 may trigger re-authentication.
        prefer_internal: Use the internal storage URL from the catalog.
    """

    def __init__(
        self,
        access: AccessManager,
        transport: HttpTransport,
        allow_reauthenticate: bool = True,
        prefer_internal: bool = False,
    ) -> None:
        self.access = access
        self.transport = transport
        self.allow_reauthenticate = allow_reauthenticate
        self.prefer_internal = prefer_internal

    def execute(self, command: Command) -> Any:
        """Run one command.

        Args:
            command: The command to execute.

        Returns:
            The result type of ``command.kind``.

        Raises:
            Unauthorized: Token rejected after the single retry.
            NotFound, Conflict, ServiceError, CommandError: Non-2xx statuses.
            ServiceError: A 2xx response whose body cannot be decoded.
            TransportError: No response was received.
        """
        request = build_request(command)
        credential = self.access.credential
        try:
            response = self._send(command, request, credential)

            if response.status == 401 and self.allow_reauthenticate:
                try:
                    credential = self.access.reauthenticate(credential.token)
                except AuthenticationError as exc:
                    raise Unauthorized(
                        f"{command.kind.value} on {command.target}: re-authentication failed: "
                        f"{exc.message}"
                    ) from exc
                response = self._send(command, request, credential)

            if not 200 <= response.status < 300:
                raise error_for_status(
                    response.status,
                    f"{command.kind.value} on {command.target} failed with status "
                    f"{response.status}",
                )
            result = parse_response(command, response)
        except StowawayError as exc:
            self._record(command, exc.code)
            raise

        self._record(command, "success")
        self._record_bytes(command, request, response)
        return result

    def _send(
        self, command: Command, request: HttpRequest, credential: Credential
    ) -> HttpResponse:
        url = credential.storage_url(internal=self.prefer_internal) + request.path
        headers = dict(request.headers)
        headers[AUTH_TOKEN] = credential.token

        started = time.monotonic()
        response = self.transport.send(
            request.method,
            url,
            headers=headers,
            params=request.params,
            body=request.body,
        )
        duration_ms = round((time.monotonic() - started) * 1000, 2)
        logger.debug(
            "%s %s -> %d",
            request.method,
            url,
            response.status,
            extra={
                "command": command.kind.value,
                "method": request.method,
                "url": url,
                "status": response.status,
                "duration_ms": duration_ms,
            },
        )
        return response

    @staticmethod
    def _record(command: Command, status: str) -> None:
        if metrics.commands_total is not None:
            metrics.commands_total.labels(command=command.kind.value, status=status).inc()

    @staticmethod
    def _record_bytes(command: Command, request: HttpRequest, response: HttpResponse) -> None:
        if command.kind is CommandKind.OBJECT_UPLOAD and metrics.bytes_uploaded_total is not None:
            metrics.bytes_uploaded_total.inc(len(request.body or b""))
        if command.kind is CommandKind.OBJECT_DOWNLOAD and metrics.bytes_downloaded_total is not None:
            metrics.bytes_downloaded_total.inc(len(response.body))
