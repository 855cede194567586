"""Cancellable scheduled tasks and the debouncer built on them."""

import threading
from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callable after a delay and returns a cancellable handle."""

    def call_later(self, delay: float, fn: Callable[[], Any]) -> TimerHandle: ...


class ThreadingScheduler:
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def __init__(self) -> None:
        self._timers: list[threading.Timer] = []
        self._lock = threading.Lock()

    def call_later(self, delay: float, fn: Callable[[], Any]) -> threading.Timer:
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        with self._lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()
        return timer

    def join(self, timeout: float | None = None) -> None:
        """Wait for scheduled tasks that have not been cancelled to finish."""
        with self._lock:
            timers = list(self._timers)
        for timer in timers:
            timer.join(timeout)


class Debouncer:
    """Delay a callback until calls stop arriving for ``delay`` seconds.

    Each call cancels the previously scheduled invocation, so only the last
    call of a burst runs, with that call's arguments. The timer handle belongs
    to this object; call ``cancel()`` when its owner is torn down.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[..., Any],
        scheduler: Scheduler | None = None,
    ) -> None:
        self.delay = delay
        self.callback = callback
        self.scheduler = scheduler or ThreadingScheduler()
        self._handle: TimerHandle | None = None
        self._lock = threading.Lock()

    def __call__(self, *args: Any) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            slot: dict[str, TimerHandle] = {}
            handle = self.scheduler.call_later(self.delay, lambda: self._fire(slot["handle"], args))
            slot["handle"] = handle
            self._handle = handle

    def _fire(self, handle: TimerHandle, args: tuple) -> None:
        # A timer already running when cancelled must not clobber a newer one
        with self._lock:
            if self._handle is not handle:
                return
            self._handle = None
        self.callback(*args)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def cancel(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
