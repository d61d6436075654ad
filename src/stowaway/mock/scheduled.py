"""Scheduled object expiry for the in-memory backend.

The :class:`ObjectDeleter` keeps a registry of objects with a deadline and
removes them from the :class:`MemoryObjectStore` once the deadline has
passed.  A daemon thread runs :meth:`ObjectDeleter.tick` at a fixed rate,
concurrently with foreground commands against the same store.

Lock discipline:
    - ``_lock`` guards the registry only and is never held while calling
      into the store, except in :meth:`schedule`, which records the
      deadline in the store before registering it.
    - ``_tick_lock`` serializes ticks (timer thread and explicit calls).
    - The store's own lock makes each removal atomic against foreground
      writes; :meth:`MemoryObjectStore.expire` re-checks the deadline.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from stowaway import metrics

if TYPE_CHECKING:
    from stowaway.mock.store import MemoryObjectStore
    from stowaway.model.stored_object import StoredObject

logger = logging.getLogger(__name__)


@dataclass
class ScheduledForDeletion:
    """An object and the moment it should disappear."""

    container: str
    name: str
    delete_at: datetime

    @property
    def key(self) -> tuple[str, str]:
        return (self.container, self.name)

    def is_due(self, now: datetime) -> bool:
        return self.delete_at <= now


class ObjectDeleter:
    """Periodic sweeper removing objects whose deadline has passed.

    Attributes:
        store: The backing store objects are removed from.
        start_after: Seconds before the first tick.
        interval_in_seconds: Seconds between the starts of two ticks.
        failed_deletions: Due objects whose removal raised, since creation.
    """

    def __init__(
        self,
        store: MemoryObjectStore,
        start_after: float = 1,
        interval_in_seconds: float = 1,
        autostart: bool = True,
    ) -> None:
        """Initialize the sweeper and, by default, start its thread.

        Args:
            store: The in-memory store to delete from.
            start_after: Seconds before the first tick.
            interval_in_seconds: Tick period in seconds.
            autostart: Start the timer thread right away.
        """
        if interval_in_seconds <= 0:
            raise ValueError("interval_in_seconds must be positive")
        self.store = store
        self.start_after = start_after
        self.interval_in_seconds = interval_in_seconds

        self._lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._scheduled: dict[tuple[str, str], ScheduledForDeletion] = {}
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None
        self.failed_deletions = 0

        if autostart:
            self.start()

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Start the timer thread; a second call is a no-op."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name="stowaway-object-deleter", daemon=True
        )
        self._thread.start()
        logger.info(
            "Object deleter started (start_after=%ss, interval=%ss)",
            self.start_after,
            self.interval_in_seconds,
        )

    def stop(self, wait: bool = True) -> None:
        """Prevent further ticks; a tick already running completes.

        Args:
            wait: Block until the timer thread has exited.
        """
        self._stopped.set()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()
        logger.info("Object deleter stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        """Timer loop: fixed-rate ticks until stopped.

        Catches all exceptions so one failing tick never ends the loop.
        """
        next_run = time.monotonic() + self.start_after
        while not self._stopped.wait(max(0.0, next_run - time.monotonic())):
            try:
                self.tick()
            except Exception:
                logger.exception("Scheduled deletion tick failed")
            next_run += self.interval_in_seconds
            # Skip missed slots instead of firing a burst of catch-up ticks.
            now = time.monotonic()
            if next_run < now:
                next_run = now

    # -- Registry --------------------------------------------------------------

    def schedule_for_deletion(self, stored_object: StoredObject, delete_at: datetime) -> None:
        """Register an object handle for deletion at ``delete_at``."""
        self.schedule(stored_object.container.name, stored_object.name, delete_at)

    def schedule(self, container: str, name: str, delete_at: datetime) -> None:
        """Register (or re-schedule) an object for deletion.

        Re-scheduling an object replaces its deadline; there is never more
        than one entry per object.

        Args:
            container: The container name.
            name: The object name.
            delete_at: The deadline; naive datetimes are taken as UTC.

        Raises:
            NotFound: If the object does not exist.
        """
        if delete_at.tzinfo is None:
            delete_at = delete_at.replace(tzinfo=timezone.utc)
        self.store.set_delete_at(container, name, delete_at)
        entry = ScheduledForDeletion(container, name, delete_at)
        with self._lock:
            self._scheduled[entry.key] = entry
            self._update_gauge()
        logger.debug(
            "Scheduled %s/%s for deletion at %s",
            container,
            name,
            delete_at.isoformat(),
            extra={"container": container, "object": name, "delete_at": delete_at},
        )

    def cancel(self, container: str, name: str) -> bool:
        """Drop the registry entry of an object, if any."""
        with self._lock:
            removed = self._scheduled.pop((container, name), None) is not None
            self._update_gauge()
        return removed

    def count_scheduled(self) -> int:
        with self._lock:
            return len(self._scheduled)

    def deadline_of(self, container: str, name: str) -> datetime | None:
        with self._lock:
            entry = self._scheduled.get((container, name))
        return entry.delete_at if entry is not None else None

    def _update_gauge(self) -> None:
        if metrics.scheduled_deletions is not None:
            metrics.scheduled_deletions.set(len(self._scheduled))

    # -- Sweep -----------------------------------------------------------------

    def tick(self, now: datetime | None = None) -> int:
        """Delete every registered object whose deadline has passed.

        Due entries are taken out of the registry in one step; entries
        registered after that step wait for the next tick.  A failure
        deleting one object is logged and counted in
        :attr:`failed_deletions` and does not affect the others; the entry
        is not retried.

        Args:
            now: The reference time, defaults to the current UTC time.

        Returns:
            The number of objects removed from the store.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        with self._tick_lock:
            with self._lock:
                due = [entry for entry in self._scheduled.values() if entry.is_due(now)]
                for entry in due:
                    del self._scheduled[entry.key]
                self._update_gauge()

            removed = failed = 0
            for entry in due:
                try:
                    if self.store.expire(entry.container, entry.name, now):
                        removed += 1
                except Exception:
                    failed += 1
                    logger.exception(
                        "Failed to delete expired object %s/%s",
                        entry.container,
                        entry.name,
                        extra={
                            "container": entry.container,
                            "object": entry.name,
                            "delete_at": entry.delete_at,
                        },
                    )
            self.failed_deletions += failed

        if removed:
            logger.info("Deleted %d expired objects", removed)
            if metrics.expired_objects_total is not None:
                metrics.expired_objects_total.inc(removed)
        if failed and metrics.expiry_failures_total is not None:
            metrics.expiry_failures_total.inc(failed)
        return removed
