"""In-memory backend: store, executor, token issuing and scheduled expiry."""

from stowaway.mock.authentication import MemoryAuthenticator
from stowaway.mock.executor import MemoryExecutor
from stowaway.mock.factory import MemoryCommandFactory
from stowaway.mock.scheduled import ObjectDeleter, ScheduledForDeletion
from stowaway.mock.store import MemoryObjectStore

__all__ = [
    "MemoryAuthenticator",
    "MemoryCommandFactory",
    "MemoryExecutor",
    "MemoryObjectStore",
    "ObjectDeleter",
    "ScheduledForDeletion",
]
