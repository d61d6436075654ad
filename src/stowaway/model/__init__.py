"""Entity model: account, containers and stored objects."""

from stowaway.model.account import Account
from stowaway.model.cache import Cached
from stowaway.model.container import Container
from stowaway.model.directory import Directory, DirectoryOrObject
from stowaway.model.listing import Paginator
from stowaway.model.stored_object import StoredObject

__all__ = [
    "Account",
    "Cached",
    "Container",
    "Directory",
    "DirectoryOrObject",
    "Paginator",
    "StoredObject",
]
