"""Executor running commands against the in-memory store.

Token handling mirrors the HTTP dispatcher: an unknown token triggers one
re-authentication and the command then proceeds, or fails with
:class:`Unauthorized`.  Errors use the same taxonomy as the live service,
so callers cannot tell the two backends apart.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from stowaway import headers as codec
from stowaway import metrics
from stowaway.access import AccessManager
from stowaway.command.base import Command, CommandKind, ListInstructions
from stowaway.errors import AuthenticationError, StowawayError, Unauthorized
from stowaway.mock.authentication import MemoryAuthenticator
from stowaway.mock.scheduled import ObjectDeleter
from stowaway.mock.store import MemoryObjectStore

logger = logging.getLogger(__name__)


def _header(headers: dict[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _delete_at_from_headers(headers: dict[str, str]) -> datetime | None:
    delete_at = codec.from_epoch(_header(headers, codec.DELETE_AT))
    if delete_at is not None:
        return delete_at
    delete_after = _header(headers, "X-Delete-After")
    if delete_after:
        return datetime.now(timezone.utc) + timedelta(seconds=int(delete_after))
    return None


class MemoryExecutor:
    """Executes commands on a :class:`MemoryObjectStore`.

    Attributes:
        store: The backing store.
        access: The access manager holding the shared credential.
        authenticator: Validates tokens issued to ``access``.
        deleter: Sweeper for ``X-Delete-At`` expiries, if any.
        allow_reauthenticate: Whether an invalid token may be refreshed once.
    """

    def __init__(
        self,
        store: MemoryObjectStore,
        access: AccessManager,
        authenticator: MemoryAuthenticator,
        deleter: ObjectDeleter | None = None,
        allow_reauthenticate: bool = True,
    ) -> None:
        self.store = store
        self.access = access
        self.authenticator = authenticator
        self.deleter = deleter
        self.allow_reauthenticate = allow_reauthenticate
        self._handlers: dict[CommandKind, Callable[[Command], Any]] = {
            CommandKind.ACCOUNT_INFO: lambda c: self.store.account_info(),
            CommandKind.ACCOUNT_METADATA: lambda c: self.store.set_account_metadata(c.metadata or {}),
            CommandKind.LIST_CONTAINERS: self._list_containers,
            CommandKind.CONTAINER_CREATE: self._create_container,
            CommandKind.CONTAINER_DELETE: lambda c: self.store.delete_container(c.container),
            CommandKind.CONTAINER_INFO: lambda c: self.store.container_info(c.container),
            CommandKind.CONTAINER_METADATA: lambda c: self.store.set_container_metadata(
                c.container, c.metadata or {}
            ),
            CommandKind.CONTAINER_RIGHTS: lambda c: self.store.set_container_rights(
                c.container, c.read_permission, c.write_permission
            ),
            CommandKind.LIST_OBJECTS: self._list_objects,
            CommandKind.LIST_DIRECTORY: self._list_objects,
            CommandKind.DELETE_OBJECTS: self._delete_objects,
            CommandKind.OBJECT_UPLOAD: self._upload,
            CommandKind.OBJECT_DELETE: self._delete_object,
            CommandKind.OBJECT_INFO: lambda c: self.store.object_info(c.container, c.object_name),
            CommandKind.OBJECT_METADATA: self._set_object_metadata,
            CommandKind.OBJECT_COPY: self._copy_object,
            CommandKind.OBJECT_DOWNLOAD: self._download,
        }

    def execute(self, command: Command) -> Any:
        """Run one command against the store.

        Raises:
            Unauthorized: Token invalid and could not be refreshed.
            NotFound, Conflict: As reported by the store.
        """
        try:
            self._check_token(command)
            result = self._handlers[command.kind](command)
        except StowawayError as exc:
            self._record(command, exc.code)
            raise
        self._record(command, "success")
        logger.debug("%s on %s", command.kind.value, command.target)
        return result

    def _check_token(self, command: Command) -> None:
        token = self.access.credential.token
        if self.authenticator.is_valid(token):
            return
        if not self.allow_reauthenticate:
            raise Unauthorized(f"{command.kind.value} on {command.target}: token rejected")
        try:
            credential = self.access.reauthenticate(token)
        except AuthenticationError as exc:
            raise Unauthorized(
                f"{command.kind.value} on {command.target}: re-authentication failed: "
                f"{exc.message}"
            ) from exc
        if not self.authenticator.is_valid(credential.token):
            raise Unauthorized(f"{command.kind.value} on {command.target}: token rejected")

    @staticmethod
    def _record(command: Command, status: str) -> None:
        if metrics.commands_total is not None:
            metrics.commands_total.labels(command=command.kind.value, status=status).inc()

    # -- Handlers --------------------------------------------------------------

    def _list_containers(self, command: Command):
        listing = command.listing or ListInstructions()
        return self.store.list_containers(listing.prefix, listing.marker, listing.limit)

    def _list_objects(self, command: Command):
        listing = command.listing or ListInstructions()
        return self.store.list_objects(
            command.container,
            prefix=listing.prefix,
            marker=listing.marker,
            limit=listing.limit,
            delimiter=listing.delimiter,
        )

    def _create_container(self, command: Command) -> None:
        self.store.create_container(command.container, command.headers)
        metadata = codec.parse_metadata("Container", command.headers)
        if metadata:
            self.store.set_container_metadata(command.container, metadata)
        read = _header(command.headers, codec.CONTAINER_READ)
        write = _header(command.headers, codec.CONTAINER_WRITE)
        if read is not None or write is not None:
            self.store.set_container_rights(command.container, read, write)

    def _upload(self, command: Command) -> str:
        delete_at = command.delete_at or _delete_at_from_headers(command.headers)
        data = command.body or b""
        etag = self.store.put_object(
            command.container,
            command.object_name,
            data,
            content_type=command.content_type,
            metadata=command.metadata,
            manifest=_header(command.headers, codec.OBJECT_MANIFEST),
        )
        if delete_at is not None and self.deleter is not None:
            self.deleter.schedule(command.container, command.object_name, delete_at)
        elif delete_at is not None:
            self.store.set_delete_at(command.container, command.object_name, delete_at)
        elif self.deleter is not None:
            self.deleter.cancel(command.container, command.object_name)
        if metrics.bytes_uploaded_total is not None:
            metrics.bytes_uploaded_total.inc(len(data))
        return etag

    def _delete_object(self, command: Command) -> None:
        self.store.delete_object(command.container, command.object_name)
        if self.deleter is not None:
            self.deleter.cancel(command.container, command.object_name)

    def _delete_objects(self, command: Command) -> int:
        deleted = self.store.delete_objects(command.container, command.object_names)
        if self.deleter is not None:
            for name in command.object_names:
                self.deleter.cancel(command.container, name)
        return deleted

    def _copy_object(self, command: Command) -> None:
        self.store.copy_object(
            command.source_container, command.source_object, command.container, command.object_name
        )
        # The copy is a fresh object; any pending expiry of the old one is void.
        if self.deleter is not None:
            self.deleter.cancel(command.container, command.object_name)

    def _set_object_metadata(self, command: Command) -> None:
        self.store.set_object_metadata(
            command.container,
            command.object_name,
            command.metadata,
            content_type=command.content_type,
        )
        # A POST without X-Delete-At clears the expiry, as on the live service.
        if command.delete_at is None:
            self.store.set_delete_at(command.container, command.object_name, None)
            if self.deleter is not None:
                self.deleter.cancel(command.container, command.object_name)
        elif self.deleter is not None:
            self.deleter.schedule(command.container, command.object_name, command.delete_at)
        else:
            self.store.set_delete_at(command.container, command.object_name, command.delete_at)

    def _download(self, command: Command) -> bytes:
        data = self.store.get_object(command.container, command.object_name)
        if metrics.bytes_downloaded_total is not None:
            metrics.bytes_downloaded_total.inc(len(data))
        return data
