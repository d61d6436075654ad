"""In-memory object store backing the mock backend.

Containers and objects live in plain dictionaries guarded by a single
re-entrant lock.  Every mutation and every existence check takes the
lock, so foreground commands and the scheduled expiry sweeper are
serialized: whichever acquires the lock first wins, and the other
observes its result.
"""

import hashlib
import logging
import mimetypes
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from stowaway.command.results import AccountInfo, ContainerInfo, ListEntry, ListPage, ObjectInfo
from stowaway.errors import Conflict, NotFound
from stowaway.headers import merge_metadata, normalize_metadata

logger = logging.getLogger(__name__)

# Swift's default page bound when a listing has no explicit limit.
DEFAULT_LISTING_LIMIT = 10000


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MemoryObject:
    """One stored object.

    Attributes:
        data: The raw bytes (empty for a manifest).
        etag: Hex MD5 of ``data``.
        content_type: MIME type.
        last_modified: Time of the last write.
        metadata: Custom metadata, lower-cased keys.
        delete_at: Scheduled expiry, if any.
        manifest: ``<container>/<prefix>`` of the segments, for manifests.
    """

    data: bytes
    etag: str
    content_type: str
    last_modified: datetime
    metadata: dict[str, str] = field(default_factory=dict)
    delete_at: datetime | None = None
    manifest: str | None = None


@dataclass
class MemoryContainer:
    """One container with its objects, ACLs and metadata."""

    name: str
    objects: dict[str, MemoryObject] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)
    read_permission: str | None = None
    write_permission: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


def _list_rows(
    names: list[str],
    prefix: str | None,
    marker: str | None,
    limit: int | None,
    delimiter: str | None,
    row_for,
) -> ListPage:
    """Marker/prefix/delimiter pagination over sorted names.

    When ``marker`` is itself a directory row (ends with the delimiter),
    names below it are skipped so that directory is never returned twice.
    """
    prefix = prefix or ""
    limit = DEFAULT_LISTING_LIMIT if limit is None else limit
    rows: list[ListEntry] = []
    seen_prefixes: set[str] = set()
    if limit <= 0:
        return ListPage(rows)

    for name in names:
        if prefix and not name.startswith(prefix):
            continue
        if marker and name <= marker:
            continue

        if delimiter:
            if marker and marker.endswith(delimiter) and name.startswith(marker):
                continue
            suffix = name[len(prefix):]
            delim_pos = suffix.find(delimiter)
            if delim_pos >= 0:
                common_prefix = prefix + suffix[: delim_pos + len(delimiter)]
                if common_prefix not in seen_prefixes:
                    seen_prefixes.add(common_prefix)
                    rows.append(ListEntry(name=common_prefix, is_directory=True))
                    if len(rows) >= limit:
                        break
                continue

        rows.append(row_for(name))
        if len(rows) >= limit:
            break

    return ListPage(rows)


class MemoryObjectStore:
    """Thread-safe in-memory account with containers and objects."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._containers: dict[str, MemoryContainer] = {}
        self._account_metadata: dict[str, str] = {}

    # -- Helpers ---------------------------------------------------------------

    def _container(self, name: str) -> MemoryContainer:
        container = self._containers.get(name)
        if container is None:
            raise NotFound(f"Container {name!r} does not exist")
        return container

    def _object(self, container: str, name: str) -> MemoryObject:
        obj = self._container(container).objects.get(name)
        if obj is None:
            raise NotFound(f"Object {container}/{name} does not exist")
        return obj

    def _segments(self, manifest: str) -> list[MemoryObject]:
        segment_container, _, segment_prefix = manifest.partition("/")
        container = self._containers.get(segment_container)
        if container is None:
            return []
        return [
            container.objects[name]
            for name in sorted(container.objects)
            if name.startswith(segment_prefix)
        ]

    def _object_info(self, obj: MemoryObject) -> ObjectInfo:
        size = len(obj.data)
        etag = obj.etag
        if obj.manifest is not None:
            segments = self._segments(obj.manifest)
            size = sum(len(segment.data) for segment in segments)
            etag = hashlib.md5("".join(s.etag for s in segments).encode()).hexdigest()
        return ObjectInfo(
            size=size,
            content_type=obj.content_type,
            last_modified=obj.last_modified,
            etag=etag,
            metadata=dict(obj.metadata),
            delete_at=obj.delete_at,
            manifest=obj.manifest,
        )

    # -- Account ---------------------------------------------------------------

    def account_info(self) -> AccountInfo:
        with self._lock:
            containers = list(self._containers.values())
            return AccountInfo(
                container_count=len(containers),
                object_count=sum(len(c.objects) for c in containers),
                bytes_used=sum(len(o.data) for c in containers for o in c.objects.values()),
                metadata=dict(self._account_metadata),
            )

    def set_account_metadata(self, metadata: dict[str, str]) -> None:
        with self._lock:
            merge_metadata(self._account_metadata, metadata)

    def list_containers(
        self,
        prefix: str | None = None,
        marker: str | None = None,
        limit: int | None = None,
    ) -> ListPage:
        with self._lock:

            def row_for(name: str) -> ListEntry:
                container = self._containers[name]
                return ListEntry(
                    name=name,
                    size=sum(len(o.data) for o in container.objects.values()),
                    object_count=len(container.objects),
                )

            return _list_rows(sorted(self._containers), prefix, marker, limit, None, row_for)

    # -- Container -------------------------------------------------------------

    def create_container(self, name: str, headers: dict[str, str] | None = None) -> bool:
        """Create a container; an existing one only gets its headers updated.

        Returns:
            True if the container was created.
        """
        with self._lock:
            container = self._containers.get(name)
            created = container is None
            if container is None:
                container = MemoryContainer(name=name)
                self._containers[name] = container
            container.headers.update(headers or {})
            return created

    def delete_container(self, name: str) -> None:
        with self._lock:
            container = self._container(name)
            if container.objects:
                raise Conflict(f"Container {name!r} is not empty")
            del self._containers[name]

    def container_exists(self, name: str) -> bool:
        with self._lock:
            return name in self._containers

    def container_info(self, name: str) -> ContainerInfo:
        with self._lock:
            container = self._container(name)
            return ContainerInfo(
                object_count=len(container.objects),
                bytes_used=sum(len(o.data) for o in container.objects.values()),
                read_permission=container.read_permission,
                write_permission=container.write_permission,
                metadata=dict(container.metadata),
            )

    def set_container_metadata(self, name: str, metadata: dict[str, str]) -> None:
        with self._lock:
            merge_metadata(self._container(name).metadata, metadata)

    def set_container_rights(self, name: str, read: str | None, write: str | None) -> None:
        """Update ACLs: None leaves an ACL unchanged, "" removes it."""
        with self._lock:
            container = self._container(name)
            if read is not None:
                container.read_permission = read or None
            if write is not None:
                container.write_permission = write or None

    def list_objects(
        self,
        container: str,
        prefix: str | None = None,
        marker: str | None = None,
        limit: int | None = None,
        delimiter: str | None = None,
    ) -> ListPage:
        with self._lock:
            objects = self._container(container).objects

            def row_for(name: str) -> ListEntry:
                obj = objects[name]
                return ListEntry(
                    name=name,
                    size=len(obj.data),
                    etag=obj.etag,
                    content_type=obj.content_type,
                    last_modified=obj.last_modified,
                )

            return _list_rows(sorted(objects), prefix, marker, limit, delimiter, row_for)

    def delete_objects(self, container: str, names: list[str]) -> int:
        """Bulk delete; names that do not exist are skipped.

        Returns:
            The number of objects deleted.
        """
        with self._lock:
            objects = self._container(container).objects
            deleted = 0
            for name in names:
                if objects.pop(name, None) is not None:
                    deleted += 1
            return deleted

    # -- Object ----------------------------------------------------------------

    def put_object(
        self,
        container: str,
        name: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
        delete_at: datetime | None = None,
        manifest: str | None = None,
    ) -> str:
        """Create or overwrite an object.

        An overwrite replaces data, metadata and expiry as a whole.

        Returns:
            The hex MD5 ETag of the stored data.
        """
        etag = hashlib.md5(data).hexdigest()
        if not content_type:
            content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        with self._lock:
            self._container(container).objects[name] = MemoryObject(
                data=bytes(data),
                etag=etag,
                content_type=content_type,
                last_modified=_now(),
                metadata=normalize_metadata(metadata),
                delete_at=delete_at,
                manifest=manifest,
            )
        return etag

    def get_object(self, container: str, name: str) -> bytes:
        """Object bytes; a manifest returns its segments concatenated."""
        with self._lock:
            obj = self._object(container, name)
            if obj.manifest is not None:
                return b"".join(segment.data for segment in self._segments(obj.manifest))
            return obj.data

    def object_exists(self, container: str, name: str) -> bool:
        with self._lock:
            found = self._containers.get(container)
            return found is not None and name in found.objects

    def object_info(self, container: str, name: str) -> ObjectInfo:
        with self._lock:
            return self._object_info(self._object(container, name))

    def set_object_metadata(
        self,
        container: str,
        name: str,
        metadata: dict[str, str] | None,
        content_type: str | None = None,
    ) -> None:
        """Object POST semantics: metadata is replaced, not merged."""
        with self._lock:
            obj = self._object(container, name)
            if metadata is not None:
                obj.metadata = normalize_metadata(metadata)
            if content_type:
                obj.content_type = content_type

    def set_delete_at(self, container: str, name: str, delete_at: datetime | None) -> None:
        with self._lock:
            self._object(container, name).delete_at = delete_at

    def delete_object(self, container: str, name: str) -> None:
        with self._lock:
            objects = self._container(container).objects
            if name not in objects:
                raise NotFound(f"Object {container}/{name} does not exist")
            del objects[name]

    def copy_object(self, src_container: str, src_name: str, dst_container: str, dst_name: str) -> str:
        """Server-side copy; a manifest source copies the assembled content.

        Returns:
            The ETag of the copy.
        """
        with self._lock:
            source = self._object(src_container, src_name)
            data = self.get_object(src_container, src_name)
            return self.put_object(
                dst_container,
                dst_name,
                data,
                content_type=source.content_type,
                metadata=dict(source.metadata),
            )

    def expire(self, container: str, name: str, now: datetime) -> bool:
        """Remove an object whose expiry is due.

        The object is only removed if its *current* ``delete_at`` is still
        set and not later than ``now``: an overwrite or a postponed expiry
        that happened first is respected.

        Returns:
            True if the object was removed.
        """
        with self._lock:
            found = self._containers.get(container)
            obj = found.objects.get(name) if found is not None else None
            if obj is None or obj.delete_at is None or obj.delete_at > now:
                return False
            del found.objects[name]
            logger.debug(
                "Expired object %s/%s",
                container,
                name,
                extra={"container": container, "object": name, "delete_at": obj.delete_at},
            )
            return True
