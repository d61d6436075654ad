"""Command factories: one per backend, identical command construction.

The entity model asks a factory for a command and calls it.  Both
factories build the same :class:`Command` values; they differ only in the
executor the commands are bound to, which is what keeps entity behaviour
identical between the live service and the in-memory backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Mapping

from stowaway.command.base import Command, CommandKind, Executor, ListInstructions
from stowaway.headers import PUBLIC_READ_ACL

if TYPE_CHECKING:
    from stowaway.command.dispatcher import CommandDispatcher
    from stowaway.model.container import Container
    from stowaway.model.stored_object import StoredObject


class CommandFactory:
    """Builds commands bound to one executor.

    Attributes:
        executor: The executor every command runs through.
        backend: Short backend name, for logs.
    """

    backend = "abstract"

    def __init__(self, executor: Executor) -> None:
        self.executor = executor

    def _command(self, kind: CommandKind, **fields) -> Command:
        return Command(kind=kind, executor=self.executor, **fields)

    # -- Account ---------------------------------------------------------------

    def account_info(self) -> Command:
        return self._command(CommandKind.ACCOUNT_INFO)

    def account_metadata(self, metadata: Mapping[str, str]) -> Command:
        return self._command(CommandKind.ACCOUNT_METADATA, metadata=dict(metadata))

    def list_containers(self, instructions: ListInstructions) -> Command:
        return self._command(CommandKind.LIST_CONTAINERS, listing=instructions)

    # -- Container -------------------------------------------------------------

    def create_container(
        self, container: Container, headers: Mapping[str, str] | None = None
    ) -> Command:
        return self._command(
            CommandKind.CONTAINER_CREATE,
            container=container.name,
            headers=dict(headers or {}),
        )

    def delete_container(self, container: Container) -> Command:
        return self._command(CommandKind.CONTAINER_DELETE, container=container.name)

    def container_info(self, container: Container) -> Command:
        return self._command(CommandKind.CONTAINER_INFO, container=container.name)

    def container_metadata(self, container: Container, metadata: Mapping[str, str]) -> Command:
        return self._command(
            CommandKind.CONTAINER_METADATA,
            container=container.name,
            metadata=dict(metadata),
        )

    def container_rights(
        self,
        container: Container,
        public: bool | None = None,
        read: str | None = None,
        write: str | None = None,
    ) -> Command:
        """Set container ACLs.

        Either pass ``public`` to toggle anonymous read access and leave the
        write ACL alone, or pass raw ``read``/``write`` ACL strings, where
        None leaves an ACL unchanged and "" removes it.
        """
        if public is not None:
            read = PUBLIC_READ_ACL if public else ""
            write = None
        return self._command(
            CommandKind.CONTAINER_RIGHTS,
            container=container.name,
            read_permission=read,
            write_permission=write,
        )

    def list_objects(self, container: Container, instructions: ListInstructions) -> Command:
        return self._command(
            CommandKind.LIST_OBJECTS, container=container.name, listing=instructions
        )

    def list_directory(
        self, container: Container, instructions: ListInstructions, delimiter: str
    ) -> Command:
        listing = ListInstructions(
            prefix=instructions.prefix,
            marker=instructions.marker,
            limit=instructions.limit,
            delimiter=delimiter,
        )
        return self._command(
            CommandKind.LIST_DIRECTORY, container=container.name, listing=listing
        )

    def delete_objects(self, container: Container, names: list[str]) -> Command:
        return self._command(
            CommandKind.DELETE_OBJECTS,
            container=container.name,
            object_names=list(names),
        )

    # -- Object ----------------------------------------------------------------

    def upload_object(
        self,
        obj: StoredObject,
        data: bytes,
        content_type: str | None = None,
        headers: Mapping[str, str] | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> Command:
        return self._command(
            CommandKind.OBJECT_UPLOAD,
            container=obj.container.name,
            object_name=obj.name,
            body=data,
            content_type=content_type,
            headers=dict(headers or {}),
            metadata=dict(metadata) if metadata else None,
        )

    def delete_object(self, obj: StoredObject) -> Command:
        return self._command(
            CommandKind.OBJECT_DELETE, container=obj.container.name, object_name=obj.name
        )

    def object_info(self, obj: StoredObject) -> Command:
        return self._command(
            CommandKind.OBJECT_INFO, container=obj.container.name, object_name=obj.name
        )

    def object_metadata(
        self,
        obj: StoredObject,
        metadata: Mapping[str, str],
        content_type: str | None = None,
        delete_at: datetime | None = None,
    ) -> Command:
        return self._command(
            CommandKind.OBJECT_METADATA,
            container=obj.container.name,
            object_name=obj.name,
            metadata=dict(metadata),
            content_type=content_type,
            delete_at=delete_at,
        )

    def copy_object(self, source: StoredObject, target: StoredObject) -> Command:
        return self._command(
            CommandKind.OBJECT_COPY,
            container=target.container.name,
            object_name=target.name,
            source_container=source.container.name,
            source_object=source.name,
        )

    def download_object(self, obj: StoredObject) -> Command:
        return self._command(
            CommandKind.OBJECT_DOWNLOAD, container=obj.container.name, object_name=obj.name
        )


class HttpCommandFactory(CommandFactory):
    """Factory whose commands are HTTP exchanges against the live service."""

    backend = "http"

    def __init__(self, dispatcher: CommandDispatcher) -> None:
        super().__init__(dispatcher)
