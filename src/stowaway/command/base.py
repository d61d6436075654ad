"""Command variants and the executor protocol.

A command is one object store operation described as data: a ``kind``
tag plus the request construction parameters for that kind.  Commands
are built by a command factory and run by whichever executor the factory
was bound to (HTTP dispatcher or in-memory executor), so retry and
authentication logic lives in exactly one place per backend.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


class CommandKind(enum.Enum):
    """Every operation the client can issue."""

    ACCOUNT_INFO = "account_info"
    ACCOUNT_METADATA = "account_metadata"
    LIST_CONTAINERS = "list_containers"

    CONTAINER_CREATE = "container_create"
    CONTAINER_DELETE = "container_delete"
    CONTAINER_INFO = "container_info"
    CONTAINER_METADATA = "container_metadata"
    CONTAINER_RIGHTS = "container_rights"
    LIST_OBJECTS = "list_objects"
    LIST_DIRECTORY = "list_directory"
    DELETE_OBJECTS = "delete_objects"

    OBJECT_UPLOAD = "object_upload"
    OBJECT_DELETE = "object_delete"
    OBJECT_INFO = "object_info"
    OBJECT_METADATA = "object_metadata"
    OBJECT_COPY = "object_copy"
    OBJECT_DOWNLOAD = "object_download"


@dataclass
class ListInstructions:
    """Paging parameters for one listing request.

    Attributes:
        prefix: Only return names starting with this prefix.
        marker: Only return names sorting after this one.
        limit: Maximum number of rows in the page.
        delimiter: Collapse names on this character into directory rows.
    """

    prefix: str | None = None
    marker: str | None = None
    limit: int | None = None
    delimiter: str | None = None


class Executor(Protocol):
    """Runs a command and returns its typed result."""

    def execute(self, command: Command) -> Any:
        """Execute the command.

        Args:
            command: The command to run.

        Returns:
            The result type belonging to ``command.kind``.

        Raises:
            StowawayError: A subclass classifying the failure.
        """
        ...


@dataclass
class Command:
    """A single object store operation bound to an executor.

    Only the fields relevant to ``kind`` are set; the rest keep their
    defaults.
    """

    kind: CommandKind
    executor: Executor = field(repr=False, compare=False)
    container: str | None = None
    object_name: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, str] | None = None
    body: bytes | None = None
    content_type: str | None = None
    listing: ListInstructions | None = None
    object_names: list[str] = field(default_factory=list)
    source_container: str | None = None
    source_object: str | None = None
    read_permission: str | None = None
    write_permission: str | None = None
    delete_at: datetime | None = None

    def call(self) -> Any:
        """Run the command through its executor."""
        return self.executor.execute(self)

    @property
    def target(self) -> str:
        """Human readable target, used in logs and error messages."""
        if self.container is None:
            return "<account>"
        if self.object_name is None:
            return self.container
        return f"{self.container}/{self.object_name}"
