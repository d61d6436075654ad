"""Containers: named groups of stored objects."""

from __future__ import annotations

import logging
import urllib.parse
from typing import TYPE_CHECKING, Mapping

from stowaway.command.base import ListInstructions
from stowaway.command.results import ContainerInfo, ListEntry
from stowaway.errors import NotFound
from stowaway.headers import (
    CONTAINER_READ,
    CONTAINER_WRITE,
    PUBLIC_READ_ACL,
    merge_metadata,
    parse_metadata,
)
from stowaway.model.cache import Cached
from stowaway.model.directory import Directory, DirectoryOrObject
from stowaway.model.listing import Paginator
from stowaway.model.stored_object import StoredObject

if TYPE_CHECKING:
    from stowaway.command.factory import CommandFactory
    from stowaway.model.account import Account

logger = logging.getLogger(__name__)

SEGMENT_CONTAINER_SUFFIX = "_segments"

# Swift's default cap on names per bulk-delete request.
BULK_DELETE_LIMIT = 10000


def _apply_rights(info: ContainerInfo, read: str | None, write: str | None) -> None:
    if read is not None:
        info.read_permission = read or None
    if write is not None:
        info.write_permission = write or None


class Container:
    """Handle to one container of an account.

    Creating a handle sends nothing; info (counts, ACLs, metadata) is
    fetched on first access and cached until :meth:`reload`.

    Attributes:
        account: The owning account.
        name: The container name.
        custom_headers: Extra headers sent by :meth:`create`.
    """

    def __init__(self, account: Account, name: str) -> None:
        if not name:
            raise ValueError("Container name must not be empty")
        self.account = account
        self.name = name
        self.custom_headers: dict[str, str] = {}
        self._info: Cached[ContainerInfo] = Cached()

    @property
    def factory(self) -> CommandFactory:
        return self.account.factory

    def __repr__(self) -> str:
        return f"Container({self.name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Container):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    # -- Lifecycle -------------------------------------------------------------

    def exists(self) -> bool:
        """Probe the service; a missing container yields False."""
        try:
            self.reload()
        except NotFound:
            self._info.invalidate()
            return False
        return True

    def create(self, headers: Mapping[str, str] | None = None) -> Container:
        """Create the container; creating an existing one is not an error.

        Args:
            headers: Extra request headers, on top of :attr:`custom_headers`.

        Returns:
            This container.
        """
        request_headers = dict(self.custom_headers)
        request_headers.update(headers or {})
        self.factory.create_container(self, request_headers).call()
        logger.debug("Created container %s", self.name)

        def update(info: ContainerInfo) -> None:
            merge_metadata(info.metadata, parse_metadata("Container", request_headers))
            _apply_rights(
                info,
                request_headers.get(CONTAINER_READ),
                request_headers.get(CONTAINER_WRITE),
            )

        self._info.patch(update)
        self.account._container_changed()
        return self

    def delete(self) -> None:
        """Delete the container.

        Raises:
            Conflict: The container still holds objects.
            NotFound: The container does not exist.
        """
        self.factory.delete_container(self).call()
        self._info.invalidate()
        self.account._container_changed()
        logger.debug("Deleted container %s", self.name)

    def reload(self) -> ContainerInfo:
        """Re-fetch the container info, replacing the cached one."""
        info = self.factory.container_info(self).call()
        self._info.set(info)
        return info

    def _get_info(self) -> ContainerInfo:
        return self._info.get(lambda: self.factory.container_info(self).call())

    def _object_changed(self) -> None:
        self._info.invalidate()
        self.account._container_changed()

    # -- Info ------------------------------------------------------------------

    @property
    def info_retrieved(self) -> bool:
        return self._info.retrieved

    @property
    def count(self) -> int:
        return self._get_info().object_count

    @property
    def bytes_used(self) -> int:
        return self._get_info().bytes_used

    @property
    def is_public(self) -> bool:
        return self._get_info().is_public

    @property
    def read_permission(self) -> str | None:
        return self._get_info().read_permission

    @property
    def write_permission(self) -> str | None:
        return self._get_info().write_permission

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self._get_info().metadata)

    def set_metadata(self, metadata: Mapping[str, str]) -> None:
        """Add or replace metadata keys; an empty value removes a key."""
        self.factory.container_metadata(self, metadata).call()
        self._info.patch(lambda info: merge_metadata(info.metadata, metadata))

    def make_public(self) -> None:
        """Grant anonymous read and listing access."""
        self.factory.container_rights(self, public=True).call()
        self._info.patch(lambda info: _apply_rights(info, PUBLIC_READ_ACL, None))

    def make_private(self) -> None:
        """Remove the read ACL; the write ACL is left alone."""
        self.factory.container_rights(self, public=False).call()
        self._info.patch(lambda info: _apply_rights(info, "", None))

    def set_rights(self, write: str | None = None, read: str | None = None) -> None:
        """Set raw ACL strings; None leaves an ACL unchanged, "" removes it."""
        self.factory.container_rights(self, read=read, write=write).call()
        self._info.patch(lambda info: _apply_rights(info, read, write))

    # -- Objects ---------------------------------------------------------------

    def get_object(self, name: str) -> StoredObject:
        """A handle to an object; nothing is sent to the service."""
        return StoredObject(self, name)

    @property
    def segment_container(self) -> Container:
        """The container holding the segments of this container's large objects."""
        return self.account.get_container(self.name + SEGMENT_CONTAINER_SUFFIX)

    def get_object_segment(self, name: str, part: int) -> StoredObject:
        """A handle to segment ``part`` of the large object ``name``."""
        return StoredObject(self.segment_container, name, segment=part)

    def list_page(
        self,
        prefix: str | None = None,
        marker: str | None = None,
        page_size: int | None = None,
    ) -> list[StoredObject]:
        """Fetch a single page of objects after ``marker``."""
        instructions = ListInstructions(
            prefix=prefix, marker=marker, limit=page_size or self.account.config.page_size
        )
        page = self.factory.list_objects(self, instructions).call()
        return [self.get_object(entry.name) for entry in page.entries]

    def list(
        self, prefix: str | None = None, page_size: int | None = None
    ) -> Paginator[StoredObject]:
        """Every object (optionally under ``prefix``), fetched lazily."""
        return Paginator(
            lambda marker, limit: self.list_page(prefix, marker, limit),
            page_size or self.account.config.page_size,
            self.account.config.max_empty_pages,
        )

    def _directory_entry(self, entry: ListEntry, delimiter: str) -> DirectoryOrObject:
        if entry.is_directory:
            return DirectoryOrObject(directory=Directory(entry.name, delimiter))
        return DirectoryOrObject.of_object(self.get_object(entry.name), delimiter)

    def list_directory_page(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        marker: str | None = None,
        page_size: int | None = None,
    ) -> list[DirectoryOrObject]:
        """Fetch a single page of a delimited listing."""
        delimiter = delimiter or self.account.config.delimiter
        instructions = ListInstructions(
            prefix=prefix, marker=marker, limit=page_size or self.account.config.page_size
        )
        page = self.factory.list_directory(self, instructions, delimiter).call()
        return [self._directory_entry(entry, delimiter) for entry in page.entries]

    def list_directory(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        marker: str | None = None,
        page_size: int | None = None,
    ) -> Paginator[DirectoryOrObject]:
        """Objects and common prefixes directly under ``prefix``, fetched lazily."""
        return Paginator(
            lambda next_marker, limit: self.list_directory_page(
                prefix, delimiter, next_marker, limit
            ),
            page_size or self.account.config.page_size,
            self.account.config.max_empty_pages,
            marker=marker,
        )

    def list_directory_of(
        self, directory: Directory, page_size: int | None = None
    ) -> Paginator[DirectoryOrObject]:
        """The children of a directory returned by a previous listing."""
        return self.list_directory(
            prefix=directory.prefix, delimiter=directory.delimiter, page_size=page_size
        )

    def delete_objects(self, names: list[str]) -> int:
        """Delete many objects with bulk requests; missing names are skipped.

        Returns:
            The number of objects deleted.
        """
        deleted = 0
        for start in range(0, len(names), BULK_DELETE_LIMIT):
            batch = names[start : start + BULK_DELETE_LIMIT]
            deleted += self.factory.delete_objects(self, batch).call()
        if names:
            self._object_changed()
        return deleted

    def delete_objects_with_prefix(self, prefix: str) -> int:
        """Delete every object whose name starts with ``prefix``."""
        names = [stored_object.name for stored_object in self.list(prefix=prefix)]
        return self.delete_objects(names)

    # -- URLs ------------------------------------------------------------------

    @property
    def public_url(self) -> str:
        return f"{self.account.public_url}/{urllib.parse.quote(self.name, safe='')}"

    @property
    def private_url(self) -> str:
        return f"{self.account.private_url}/{urllib.parse.quote(self.name, safe='')}"
