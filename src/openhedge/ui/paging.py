"""Incremental (infinite-scroll) loading of remote tables."""

import logging
from typing import Any, Callable, Hashable

from ..remote.client import RemoteError
from .search import dedupe

log = logging.getLogger(__name__)


class PagedLoader:
    """Fetches fixed-size batches and appends them as the table scrolls.

    ``fetch_page(start, end)`` returns rows for the inclusive range. A batch
    shorter than ``page_size`` marks the table exhausted. Batches after the
    first are appended without rows whose ``key`` is already loaded.
    """

    def __init__(
        self,
        fetch_page: Callable[[int, int], list[Any]],
        page_size: int,
        key: Callable[[Any], Hashable] | None = None,
        name: str = "table",
    ) -> None:
        self.fetch_page = fetch_page
        self.page_size = page_size
        self.key = key
        self.name = name

        self.rows: list[Any] = []
        self.page = 0
        self.has_more = True
        self.loading = False

    def reset(self) -> None:
        self.rows = []
        self.page = 0
        self.has_more = True
        self.loading = False

    def replace(self, rows: list[Any]) -> None:
        """Install a complete, already-sorted row set; nothing more to load."""
        self.rows = list(rows)
        self.page = 0
        self.has_more = False

    def load_next(self) -> int:
        """
        Fetch the next batch.

        Returns:
            Number of rows added (0 when exhausted, busy or on failure)
        """
        if self.loading or not self.has_more:
            return 0

        self.loading = True
        start = self.page * self.page_size
        end = start + self.page_size - 1
        try:
            batch = self.fetch_page(start, end)
        except RemoteError as e:
            log.error("Error fetching %s rows %d-%d: %s", self.name, start, end, e)
            return 0
        finally:
            self.loading = False

        batch = batch or []
        if len(batch) < self.page_size:
            self.has_more = False

        before = len(self.rows)
        if self.page == 0:
            self.rows = dedupe(batch, self.key)
        else:
            self.rows = dedupe(self.rows + batch, self.key)
        self.page += 1
        return len(self.rows) - before

    def on_row_visible(self, index: int) -> int:
        """Called when row ``index`` scrolls into view; loads more at the end."""
        if index == len(self.rows) - 1 and self.has_more and not self.loading:
            return self.load_next()
        return 0
