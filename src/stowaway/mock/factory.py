"""Command factory for the in-memory backend."""

from stowaway.command.factory import CommandFactory
from stowaway.mock.executor import MemoryExecutor


class MemoryCommandFactory(CommandFactory):
    """Factory whose commands run against a :class:`MemoryObjectStore`.

    Attributes:
        store: The store shared with the scheduled expiry sweeper.
    """

    backend = "memory"

    def __init__(self, executor: MemoryExecutor) -> None:
        super().__init__(executor)
        self.store = executor.store
