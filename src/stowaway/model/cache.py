"""Read-through cache for entity info."""

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class Cached(Generic[T]):
    """One lazily fetched value plus its retrieved flag.

    ``retrieved`` only becomes true after a fetch succeeds; a fetch that
    raises leaves the cache untouched and the error propagates.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None
        self._retrieved = False

    @property
    def retrieved(self) -> bool:
        with self._lock:
            return self._retrieved

    def get(self, fetch: Callable[[], T]) -> T:
        """Return the cached value, fetching it first if needed."""
        with self._lock:
            if self._retrieved:
                return self._value
        value = fetch()
        self.set(value)
        return value

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._retrieved = True

    def patch(self, update: Callable[[T], None]) -> None:
        """Apply an in-place update, only if a value is cached."""
        with self._lock:
            if self._retrieved:
                update(self._value)

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._retrieved = False
