"""Result types returned by executed commands.

These dataclasses are what both executors (HTTP and in-memory) hand back
to the entity model, so the model never sees raw headers or JSON bodies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class AccountInfo:
    """Account level counters and metadata.

    Attributes:
        container_count: Number of containers in the account.
        object_count: Number of objects across all containers.
        bytes_used: Total bytes stored.
        metadata: Custom account metadata.
    """

    container_count: int = 0
    object_count: int = 0
    bytes_used: int = 0
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class ContainerInfo:
    """Container counters, access rights and metadata.

    Attributes:
        object_count: Number of objects in the container.
        bytes_used: Total bytes stored in the container.
        read_permission: Raw read ACL, or None when private.
        write_permission: Raw write ACL, or None.
        metadata: Custom container metadata.
    """

    object_count: int = 0
    bytes_used: int = 0
    read_permission: str | None = None
    write_permission: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_public(self) -> bool:
        """True when the read ACL grants anonymous referrer access."""
        if not self.read_permission:
            return False
        return any(part.strip().startswith(".r:") for part in self.read_permission.split(","))


@dataclass
class ObjectInfo:
    """Object attributes as reported by the store.

    Attributes:
        size: Content length in bytes (for a manifest, the combined size).
        content_type: MIME type.
        last_modified: Last modification time (UTC), if reported.
        etag: Hash of the content.
        metadata: Custom object metadata.
        delete_at: Scheduled expiry time (UTC), if any.
        manifest: ``<container>/<prefix>`` of the segments, for manifests.
    """

    size: int = 0
    content_type: str = "application/octet-stream"
    last_modified: datetime | None = None
    etag: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    delete_at: datetime | None = None
    manifest: str | None = None


@dataclass
class ListEntry:
    """One row of a listing: an object, or a directory prefix.

    Attributes:
        name: Object name, or the common prefix for directories.
        size: Object size in bytes (0 for directories).
        etag: Object hash ("" for directories).
        content_type: Object MIME type ("" for directories).
        last_modified: Object modification time, if reported.
        is_directory: Whether this row is a common prefix.
        object_count: For container listings, the container object count.
    """

    name: str
    size: int = 0
    etag: str = ""
    content_type: str = ""
    last_modified: datetime | None = None
    is_directory: bool = False
    object_count: int = 0


@dataclass
class ListPage:
    """A single page of listing rows in marker order."""

    entries: list[ListEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)
