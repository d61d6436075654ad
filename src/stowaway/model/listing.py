"""Marker based pagination over listing pages.

A listing is fetched page by page: every request carries the key of the
last entry seen as ``marker``, and a page shorter than ``page_size``
signals the end.  An empty page is not trusted as the end right away:
the marker may point at an entry deleted since, so the same marker is
retried up to ``max_empty_pages`` consecutive times.
"""

import logging
from typing import Callable, Generic, Iterator, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchPage = Callable[[str | None, int], Sequence[T]]


class Paginator(Generic[T]):
    """Forward-only iterator over every entry of a paginated listing.

    Entries are yielded in strictly increasing key order: a row whose key
    does not sort after the current marker was already yielded (typically
    a directory prefix reported again) and is dropped.

    The paginator can be iterated once; iterating it again yields nothing.

    Attributes:
        page_size: Rows requested per page.
        max_empty_pages: Consecutive empty pages tolerated before stopping.
        marker: Key of the last entry yielded so far.
        rounds: Number of fetched pages that contributed entries.
        fetches: Number of page requests issued.
    """

    def __init__(
        self,
        fetch_page: FetchPage,
        page_size: int,
        max_empty_pages: int = 1,
        key: Callable[[T], str] = lambda entry: entry.name,
        marker: str | None = None,
    ) -> None:
        """Prepare a listing; nothing is fetched until iteration starts.

        Args:
            fetch_page: Called with ``(marker, page_size)``, returns one page.
            page_size: Rows per page, must be positive.
            max_empty_pages: Empty pages retried at the same marker.
            key: Extracts the marker key of an entry.
            marker: Start after this key.
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if max_empty_pages < 0:
            raise ValueError("max_empty_pages must not be negative")
        self._fetch_page = fetch_page
        self._key = key
        self._started = False
        self.page_size = page_size
        self.max_empty_pages = max_empty_pages
        self.marker = marker
        self.rounds = 0
        self.fetches = 0

    def __iter__(self) -> Iterator[T]:
        if self._started:
            return iter(())
        self._started = True
        return self._iterate()

    def _iterate(self) -> Iterator[T]:
        empty_pages = 0
        while True:
            page = self._fetch_page(self.marker, self.page_size)
            self.fetches += 1
            fresh = [entry for entry in page if self._after_marker(entry)]

            if not fresh:
                empty_pages += 1
                if len(page) < self.page_size and page:
                    return
                if empty_pages > self.max_empty_pages:
                    logger.debug(
                        "Listing ends after %d empty page(s) at marker %r",
                        empty_pages,
                        self.marker,
                    )
                    return
                logger.debug("Empty page at marker %r, retrying", self.marker)
                continue

            empty_pages = 0
            self.rounds += 1
            for entry in fresh:
                self.marker = self._key(entry)
                yield entry
            if len(page) < self.page_size:
                return

    def _after_marker(self, entry: T) -> bool:
        return self.marker is None or self._key(entry) > self.marker
