"""Tests for debouncing and search-as-you-type."""

import threading

from openhedge.remote.client import RemoteError
from openhedge.ui.debounce import Debouncer, ThreadingScheduler
from openhedge.ui.search import SearchBox, dedupe


class TestDebouncer:
    def test_only_last_call_of_burst_runs(self, scheduler):
        calls = []
        debounced = Debouncer(0.3, calls.append, scheduler)

        debounced("a")
        debounced("ap")
        debounced("app")

        assert debounced.pending
        assert scheduler.run_all() == 1
        assert calls == ["app"]
        assert not debounced.pending

    def test_cancel(self, scheduler):
        calls = []
        debounced = Debouncer(0.3, calls.append, scheduler)
        debounced("x")
        debounced.cancel()

        assert scheduler.run_all() == 0
        assert calls == []

    def test_late_superseded_timer_keeps_newer_one_cancellable(self, scheduler):
        calls = []
        debounced = Debouncer(0.3, calls.append, scheduler)
        debounced("a")
        debounced("ab")

        # The first timer was already running when the second call cancelled it
        stale = scheduler.handles[0]
        assert stale.cancelled
        stale.fn()

        assert calls == []
        assert debounced.pending
        debounced.cancel()
        assert not debounced.pending
        assert scheduler.run_all() == 0
        assert calls == []

    def test_delay_is_passed_to_scheduler(self, scheduler):
        debounced = Debouncer(0.6, lambda: None, scheduler)
        debounced()
        assert scheduler.pending[0].delay == 0.6

    def test_threading_scheduler_fires(self):
        fired = threading.Event()
        scheduler = ThreadingScheduler()
        Debouncer(0.01, fired.set, scheduler)()
        assert fired.wait(2)
        scheduler.join(2)


class TestDedupe:
    def test_keeps_first_occurrence(self):
        rows = [{"symbol": "AAPL", "n": 1}, {"symbol": "MSFT"}, {"symbol": "AAPL", "n": 2}]
        result = dedupe(rows, key=lambda r: r["symbol"])
        assert [r["symbol"] for r in result] == ["AAPL", "MSFT"]
        assert result[0]["n"] == 1

    def test_no_key_keeps_everything(self):
        assert dedupe([1, 1, 2], None) == [1, 1, 2]


class TestSearchBox:
    def test_text_updates_immediately_query_waits(self, scheduler):
        calls = []
        box = SearchBox(lambda t: calls.append(t) or [t], 0.3, scheduler=scheduler)

        box.set_text("ap")
        assert box.text == "ap"
        assert calls == []

        scheduler.run_all()
        assert calls == ["ap"]
        assert box.options == ["ap"]

    def test_one_query_per_pause(self, scheduler):
        calls = []
        box = SearchBox(lambda t: calls.append(t) or [], 0.3, scheduler=scheduler)
        for text in ("a", "ap", "app", "appl"):
            box.set_text(text)
        scheduler.run_all()
        assert calls == ["appl"]

    def test_below_min_length_clears_without_query(self, scheduler):
        calls = []
        box = SearchBox(lambda t: calls.append(t) or [t], 0.5, min_length=2, scheduler=scheduler)
        box.set_text("ber")
        scheduler.run_all()
        assert box.options == ["ber"]

        box.set_text("b")
        scheduler.run_all()
        assert box.options == []
        assert calls == ["ber"]

    def test_below_min_length_can_hold_options(self, scheduler):
        box = SearchBox(lambda t: [t], 0.3, hold_below_min=True, scheduler=scheduler)
        box.set_text("tsla")
        scheduler.run_all()

        box.set_text("")
        assert scheduler.run_all() == 0
        assert box.options == ["tsla"]

    def test_clearing_cancels_pending_query(self, scheduler):
        calls = []
        box = SearchBox(lambda t: calls.append(t) or [t], 0.3, scheduler=scheduler)
        box.set_text("nv")
        box.set_text("")
        scheduler.run_all()
        assert calls == []

    def test_stale_response_is_discarded(self, scheduler):
        calls = []

        def fetch(term):
            calls.append(term)
            if term == "app":
                # The user keeps typing while this request is in flight
                box.set_text("appl")
            return [f"result for {term}"]

        box = SearchBox(fetch, 0.3, scheduler=scheduler)
        box.set_text("app")
        scheduler.run_all()

        assert calls == ["app", "appl"]
        assert box.options == ["result for appl"]
        assert not box.searching

    def test_results_are_deduplicated(self, scheduler):
        rows = [{"symbol": "AAPL"}, {"symbol": "AAPL"}, {"symbol": "APP"}]
        box = SearchBox(lambda t: rows, 0.3, key=lambda r: r["symbol"], scheduler=scheduler)
        box.set_text("ap")
        scheduler.run_all()
        assert [r["symbol"] for r in box.options] == ["AAPL", "APP"]

    def test_remote_failure_keeps_previous_options(self, scheduler):
        responses = iter([["first"], RemoteError("down")])

        def fetch(term):
            result = next(responses)
            if isinstance(result, Exception):
                raise result
            return result

        box = SearchBox(fetch, 0.3, scheduler=scheduler)
        box.set_text("f")
        scheduler.run_all()
        box.set_text("fa")
        scheduler.run_all()

        assert box.options == ["first"]
        assert not box.searching
        assert box.wait_idle(0)

    def test_clear_resets_input_and_options(self, scheduler):
        box = SearchBox(lambda t: [t], 0.3, scheduler=scheduler)
        box.set_text("msft")
        scheduler.run_all()
        box.clear()
        assert box.text == ""
        assert box.options == []
