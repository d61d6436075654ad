"""Directory rows of delimited listings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stowaway.model.stored_object import StoredObject


@dataclass(frozen=True)
class Directory:
    """A common name prefix, e.g. ``photos/2024/`` with delimiter ``/``."""

    name: str
    delimiter: str = "/"

    @property
    def bare_name(self) -> str:
        """The last path component, without the trailing delimiter."""
        stripped = self.name
        if stripped.endswith(self.delimiter):
            stripped = stripped[: -len(self.delimiter)]
        return stripped.rsplit(self.delimiter, 1)[-1]

    @property
    def prefix(self) -> str:
        """The listing prefix selecting this directory's children."""
        return self.name if self.name.endswith(self.delimiter) else self.name + self.delimiter


class DirectoryOrObject:
    """One entry of a delimited listing: a directory or an object."""

    def __init__(
        self,
        directory: Directory | None = None,
        stored_object: StoredObject | None = None,
        delimiter: str | None = None,
    ) -> None:
        if (directory is None) == (stored_object is None):
            raise ValueError("Exactly one of directory or stored_object is required")
        self._directory = directory
        self._object = stored_object
        if delimiter is None:
            delimiter = directory.delimiter if directory is not None else "/"
        self._delimiter = delimiter

    @classmethod
    def of_object(cls, stored_object: StoredObject, delimiter: str = "/") -> DirectoryOrObject:
        return cls(stored_object=stored_object, delimiter=delimiter)

    @property
    def is_directory(self) -> bool:
        return self._directory is not None

    @property
    def is_object(self) -> bool:
        return self._object is not None

    @property
    def name(self) -> str:
        if self._directory is not None:
            return self._directory.name
        return self._object.name

    @property
    def bare_name(self) -> str:
        if self._directory is not None:
            return self._directory.bare_name
        return self._object.name.rsplit(self._delimiter, 1)[-1]

    def as_directory(self) -> Directory:
        if self._directory is None:
            raise TypeError(f"{self.name!r} is not a directory")
        return self._directory

    def as_object(self) -> StoredObject:
        if self._object is None:
            raise TypeError(f"{self.name!r} is not an object")
        return self._object

    def __repr__(self) -> str:
        kind = "Directory" if self.is_directory else "StoredObject"
        return f"DirectoryOrObject({kind} {self.name!r})"
