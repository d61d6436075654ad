"""Tests for the marker based paginator."""

from dataclasses import dataclass

import pytest

from stowaway.model.listing import Paginator


@dataclass
class Row:
    name: str


class FakePages:
    """Serves sorted names page by page, with optional empty answers.

    Attributes:
        names: Every name, sorted.
        empty_at: Fetch numbers (1-based) answered with an empty page.
        markers: The marker of every fetch, in order.
    """

    def __init__(self, names, empty_at=()):
        self.names = sorted(names)
        self.empty_at = set(empty_at)
        self.markers = []

    def __call__(self, marker, limit):
        self.markers.append(marker)
        if len(self.markers) in self.empty_at:
            return []
        remaining = [n for n in self.names if marker is None or n > marker]
        return [Row(n) for n in remaining[:limit]]


def _names(n):
    return [f"obj-{i:04d}" for i in range(n)]


class TestPaginator:
    """Tests for Paginator."""

    def test_all_entries_in_order(self):
        """Every entry is yielded once in marker order."""
        pages = FakePages(_names(120))
        paginator = Paginator(pages, page_size=50)
        assert [row.name for row in paginator] == _names(120)
        assert paginator.rounds == 3

    def test_short_page_ends_listing(self):
        """A page shorter than page_size is the last one fetched."""
        pages = FakePages(_names(120))
        list(Paginator(pages, page_size=50))
        assert pages.markers == [None, "obj-0049", "obj-0099"]

    def test_exact_multiple(self):
        """An exact multiple ends after the tolerated empty pages."""
        pages = FakePages(_names(100))
        paginator = Paginator(pages, page_size=50, max_empty_pages=1)
        assert len(list(paginator)) == 100
        assert paginator.rounds == 2
        assert pages.markers == [None, "obj-0049", "obj-0099", "obj-0099"]

    def test_intermediate_empty_page_tolerated(self):
        """One empty page mid-listing is retried with the same marker."""
        pages = FakePages(_names(150), empty_at={2})
        paginator = Paginator(pages, page_size=50)
        assert [row.name for row in paginator] == _names(150)
        assert pages.markers[1] == pages.markers[2] == "obj-0049"
        assert paginator.rounds == 3

    def test_empty_pages_bounded(self):
        """A backend that keeps answering empty pages ends the listing."""
        pages = FakePages(_names(150), empty_at={2, 3, 4, 5})
        paginator = Paginator(pages, page_size=50, max_empty_pages=2)
        assert len(list(paginator)) == 50
        assert paginator.fetches == 4

    def test_no_tolerance(self):
        """max_empty_pages=0 treats the first empty page as the end."""
        pages = FakePages(_names(150), empty_at={2})
        assert len(list(Paginator(pages, page_size=50, max_empty_pages=0))) == 50

    def test_empty_listing(self):
        """An empty listing yields nothing."""
        paginator = Paginator(FakePages([]), page_size=10)
        assert list(paginator) == []
        assert paginator.rounds == 0

    def test_repeated_rows_dropped(self):
        """Rows not after the marker are never yielded twice."""

        def fetch(marker, limit):
            if marker is None:
                return [Row("a/"), Row("b")]
            return [Row("a/"), Row("b"), Row("c")]

        assert [row.name for row in Paginator(fetch, page_size=2)] == ["a/", "b", "c"]

    def test_not_restartable(self):
        """A second iteration yields nothing and fetches nothing."""
        pages = FakePages(_names(10))
        paginator = Paginator(pages, page_size=50)
        assert len(list(paginator)) == 10
        assert list(paginator) == []
        assert len(pages.markers) == 1

    def test_lazy(self):
        """Pages are only fetched as entries are consumed."""
        pages = FakePages(_names(150))
        iterator = iter(Paginator(pages, page_size=50))
        assert pages.markers == []
        next(iterator)
        assert pages.markers == [None]

    def test_start_marker(self):
        """An initial marker skips the earlier entries."""
        paginator = Paginator(FakePages(_names(10)), page_size=50, marker="obj-0007")
        assert [row.name for row in paginator] == ["obj-0008", "obj-0009"]

    def test_strictly_increasing_markers(self):
        """The marker only moves forward."""
        pages = FakePages(_names(150))
        list(Paginator(pages, page_size=50))
        markers = [m for m in pages.markers if m is not None]
        assert markers == sorted(set(markers))

    @pytest.mark.parametrize("page_size,max_empty", [(0, 1), (10, -1)])
    def test_invalid_arguments(self, page_size, max_empty):
        """page_size must be positive and max_empty_pages not negative."""
        with pytest.raises(ValueError):
            Paginator(FakePages([]), page_size=page_size, max_empty_pages=max_empty)
