"""Stored objects and their segments."""

from __future__ import annotations

import logging
import os
import urllib.parse
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import IO, TYPE_CHECKING, Mapping, Union

from stowaway.command.results import ObjectInfo
from stowaway.errors import NotFound
from stowaway.headers import OBJECT_MANIFEST, normalize_metadata
from stowaway.model.cache import Cached

if TYPE_CHECKING:
    from stowaway.command.factory import CommandFactory
    from stowaway.model.container import Container

logger = logging.getLogger(__name__)

UploadSource = Union[bytes, bytearray, memoryview, str, os.PathLike, IO[bytes]]


def segment_name(name: str, part: int) -> str:
    """Wire name of segment ``part`` of the object ``name``."""
    return f"{name}/{part:08d}"


def _read_source(source: UploadSource) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, (str, os.PathLike)):
        return Path(source).read_bytes()
    if hasattr(source, "read"):
        return source.read()
    raise TypeError(f"Cannot upload from {type(source).__name__}")


class StoredObject:
    """Handle to an object, or to one segment of a large object.

    Identity is ``(container name, base name, segment)``.  A segment handle
    lives in the segment container and its wire :attr:`name` is
    ``<base name>/<part, 8 digits>``.

    After :meth:`delete` the handle stays usable: its cache is cleared,
    :meth:`exists` returns False and getters raise :class:`NotFound`.

    Attributes:
        container: The container holding the object (the segment container
            for a segment).
        base_name: The object name without the segment suffix.
        segment: Segment number, or None for a whole object.
    """

    def __init__(self, container: Container, name: str, segment: int | None = None) -> None:
        if not name:
            raise ValueError("Object name must not be empty")
        if segment is not None and segment < 0:
            raise ValueError("Segment number must not be negative")
        self.container = container
        self.base_name = name
        self.segment = segment
        self._info: Cached[ObjectInfo] = Cached()

    @property
    def name(self) -> str:
        """The name the object is stored under."""
        if self.segment is None:
            return self.base_name
        return segment_name(self.base_name, self.segment)

    @property
    def is_segment(self) -> bool:
        return self.segment is not None

    @property
    def factory(self) -> CommandFactory:
        return self.container.factory

    def _identity(self) -> tuple[str, str, int | None]:
        return (self.container.name, self.base_name, self.segment)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StoredObject):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __repr__(self) -> str:
        return f"StoredObject({self.container.name!r}, {self.name!r})"

    # -- Lifecycle -------------------------------------------------------------

    def exists(self) -> bool:
        """Probe the service; a missing object yields False."""
        try:
            self.reload()
        except NotFound:
            self._info.invalidate()
            return False
        return True

    def delete(self) -> None:
        """Delete the object; the handle can still be used afterwards.

        Raises:
            NotFound: The object does not exist.
        """
        self.factory.delete_object(self).call()
        self._info.invalidate()
        self.container._object_changed()
        logger.debug("Deleted object %s/%s", self.container.name, self.name)

    def reload(self) -> ObjectInfo:
        """Re-fetch the object info, replacing the cached one."""
        info = self.factory.object_info(self).call()
        self._info.set(info)
        return info

    def _get_info(self) -> ObjectInfo:
        return self._info.get(lambda: self.factory.object_info(self).call())

    # -- Info ------------------------------------------------------------------

    @property
    def info_retrieved(self) -> bool:
        return self._info.retrieved

    @property
    def size(self) -> int:
        return self._get_info().size

    @property
    def content_type(self) -> str:
        return self._get_info().content_type

    @property
    def last_modified(self) -> datetime | None:
        return self._get_info().last_modified

    @property
    def etag(self) -> str:
        return self._get_info().etag

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self._get_info().metadata)

    @property
    def delete_at(self) -> datetime | None:
        return self._get_info().delete_at

    @property
    def manifest(self) -> str | None:
        """``<segment container>/<prefix>`` for a segmented object."""
        return self._get_info().manifest

    def set_metadata(self, metadata: Mapping[str, str]) -> None:
        """Replace the object metadata as a whole.

        A metadata POST clears any expiry it does not restate, so the current
        deadline is sent along; this fetches the info if it is not cached.
        """
        self.factory.object_metadata(self, metadata, delete_at=self.delete_at).call()
        normalized = normalize_metadata(metadata)
        self._info.patch(lambda info: setattr(info, "metadata", normalized))

    def set_content_type(self, content_type: str) -> None:
        """Change the content type, keeping the current metadata and expiry."""
        info = self._get_info()
        self.factory.object_metadata(
            self, info.metadata, content_type=content_type, delete_at=info.delete_at
        ).call()
        self._info.patch(lambda info: setattr(info, "content_type", content_type))

    def set_delete_at(self, delete_at: datetime) -> None:
        """Have the service delete the object at ``delete_at``."""
        if delete_at.tzinfo is None:
            delete_at = delete_at.replace(tzinfo=timezone.utc)
        self.factory.object_metadata(self, self.metadata, delete_at=delete_at).call()
        self._info.patch(lambda info: setattr(info, "delete_at", delete_at))

    def set_delete_after(self, seconds: float) -> None:
        """Have the service delete the object ``seconds`` from now."""
        self.set_delete_at(datetime.now(timezone.utc) + timedelta(seconds=seconds))

    # -- Content ---------------------------------------------------------------

    def upload(
        self,
        source: UploadSource,
        content_type: str | None = None,
        segmentation_size: int | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> str:
        """Upload content, segmenting it when it is too large.

        Content above ``segmentation_size`` is split into segments stored in
        the segment container, followed by an empty manifest object that
        makes the segments readable as one object.

        Args:
            source: Bytes, a file path, or a binary file object.
            content_type: MIME type; guessed from the name when omitted.
            segmentation_size: Largest single upload, defaults to the
                client configuration.
            metadata: Custom metadata for the object.

        Returns:
            The ETag reported for the upload (of the manifest, if segmented).
        """
        data = _read_source(source)
        limit = segmentation_size or self.container.account.config.segmentation_size
        if len(data) > limit:
            etag = self._upload_segmented(data, limit, content_type, metadata)
        else:
            etag = self.factory.upload_object(
                self, data, content_type=content_type, metadata=metadata
            ).call()
        self._info.invalidate()
        self.container._object_changed()
        return etag

    def _upload_segmented(
        self,
        data: bytes,
        limit: int,
        content_type: str | None,
        metadata: Mapping[str, str] | None,
    ) -> str:
        segments = self.container.segment_container
        segments.create()
        # Segments of an earlier, larger upload would otherwise be appended.
        segments.delete_objects_with_prefix(self.name + "/")

        parts = range(0, len(data), limit)
        for part, start in enumerate(parts):
            chunk = data[start : start + limit]
            segment = StoredObject(segments, self.name, segment=part)
            self.factory.upload_object(segment, chunk).call()
        segments._object_changed()
        logger.info(
            "Uploaded %s/%s in %d segments of at most %d bytes",
            self.container.name,
            self.name,
            len(parts),
            limit,
        )

        manifest = f"{segments.name}/{self.name}/"
        return self.factory.upload_object(
            self,
            b"",
            content_type=content_type,
            headers={OBJECT_MANIFEST: manifest},
            metadata=metadata,
        ).call()

    def download(self) -> bytes:
        """The object content; a segmented object is returned assembled."""
        return self.factory.download_object(self).call()

    def download_to_file(self, path: str | os.PathLike) -> int:
        """Write the content to ``path``.

        Returns:
            The number of bytes written.
        """
        data = self.download()
        Path(path).write_bytes(data)
        return len(data)

    def copy_object(self, target: StoredObject) -> StoredObject:
        """Copy this object to ``target`` on the service side."""
        self.factory.copy_object(self, target).call()
        target._info.invalidate()
        target.container._object_changed()
        return target

    # -- URLs ------------------------------------------------------------------

    @property
    def public_url(self) -> str:
        return f"{self.container.public_url}/{urllib.parse.quote(self.name, safe='/')}"

    @property
    def private_url(self) -> str:
        return f"{self.container.private_url}/{urllib.parse.quote(self.name, safe='/')}"
