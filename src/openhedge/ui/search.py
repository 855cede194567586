"""Debounced search-as-you-type over the remote store."""

import logging
import threading
from typing import Any, Callable, Hashable

from ..remote.client import RemoteError
from .debounce import Debouncer, Scheduler

log = logging.getLogger(__name__)


def dedupe(items: list[Any], key: Callable[[Any], Hashable] | None) -> list[Any]:
    """Drop later items whose key was already seen, keeping order."""
    if key is None:
        return list(items)
    seen: set = set()
    unique = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        unique.append(item)
    return unique


class SearchBox:
    """A text input whose remote query fires only once typing pauses.

    ``set_text`` updates ``text`` immediately. Input shorter than
    ``min_length`` never reaches the store: the options are cleared, or kept
    as they were when ``hold_below_min`` is set. Each keystroke bumps a
    generation counter, and a response that comes back for an older
    generation is discarded instead of overwriting newer results.
    """

    def __init__(
        self,
        fetch: Callable[[str], list[Any]],
        delay: float,
        min_length: int = 1,
        key: Callable[[Any], Hashable] | None = None,
        hold_below_min: bool = False,
        scheduler: Scheduler | None = None,
        name: str = "search",
    ) -> None:
        self.fetch = fetch
        self.min_length = min_length
        self.key = key
        self.hold_below_min = hold_below_min
        self.name = name

        self.text = ""
        self.options: list[Any] = []
        self.searching = False

        self._generation = 0
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._debouncer = Debouncer(delay, self._run, scheduler)

    def set_text(self, text: str) -> None:
        with self._lock:
            self.text = text
            self._generation += 1
            generation = self._generation

        if len(text.strip()) < max(self.min_length, 1):
            self._debouncer.cancel()
            if not self.hold_below_min:
                self.options = []
            self.searching = False
            self._idle.set()
            return

        self._idle.clear()
        self._debouncer(text.strip(), generation)

    def _run(self, text: str, generation: int) -> None:
        with self._lock:
            if generation == self._generation:
                self.searching = True
        try:
            results = self.fetch(text)
        except RemoteError as e:
            log.error("%s failed for %r: %s", self.name, text, e)
            results = None

        with self._lock:
            if generation != self._generation:
                log.debug("%s: discarding stale results for %r", self.name, text)
                return
            if results is not None:
                self.options = dedupe(results, self.key)
            self.searching = False
        self._idle.set()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no search is scheduled or in flight."""
        return self._idle.wait(timeout)

    def clear(self) -> None:
        """Reset the input and options (after a selection or submit)."""
        with self._lock:
            self._generation += 1
            self.text = ""
        self._debouncer.cancel()
        self.options = []
        self.searching = False
        self._idle.set()

    def close(self) -> None:
        self._debouncer.cancel()
        self._idle.set()
