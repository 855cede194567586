"""Interaction primitives shared by the views."""

from .debounce import Debouncer, Scheduler, ThreadingScheduler
from .paging import PagedLoader
from .search import SearchBox, dedupe
from .sorting import CYCLE_WITH_UNSORTED, DEFAULT_CYCLE, SortState

__all__ = [
    "CYCLE_WITH_UNSORTED",
    "DEFAULT_CYCLE",
    "Debouncer",
    "PagedLoader",
    "Scheduler",
    "SearchBox",
    "SortState",
    "ThreadingScheduler",
    "dedupe",
]
