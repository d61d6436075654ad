"""Commands: tagged operation variants, result types and executors.

Only the dependency-free types are re-exported here; import the
dispatcher and factories from their modules.
"""

from stowaway.command.base import Command, CommandKind, Executor, ListInstructions
from stowaway.command.results import (
    AccountInfo,
    ContainerInfo,
    ListEntry,
    ListPage,
    ObjectInfo,
)

__all__ = [
    "AccountInfo",
    "Command",
    "CommandKind",
    "ContainerInfo",
    "Executor",
    "ListEntry",
    "ListInstructions",
    "ListPage",
    "ObjectInfo",
]
