"""Tests for profile storage and the watchlist view."""

import json

import pytest

from openhedge.remote.client import RemoteError
from openhedge.storage.models import PortfolioEntry, Security
from openhedge.storage.profiles import ProfileStore, default_user_details
from openhedge.views.portfolio import PortfolioView


def _entry(symbol, shares=10, price=100.0, entry_id=None):
    entry = PortfolioEntry.new(symbol, f"{symbol} INC", shares, price)
    if entry_id:
        entry.id = entry_id
    return entry


def _trending(symbol, *shares):
    return {
        "symbol": symbol,
        "investor_details": json.dumps(
            {"total_value": 0, "institutions": [{"institution": f"F{i}", "shares": s} for i, s in enumerate(shares)]}
        ),
    }


@pytest.fixture
def profile(backend, signed_in):
    """The signed-in user's profile row."""
    return backend.table("profiles")[0]


class TestProfileStore:
    def test_default_details(self):
        details = default_user_details("a@b.c")
        assert details["email"] == "a@b.c"
        assert details["portfolio"] == []
        assert "created_at" in details

    def test_ensure_profile_is_idempotent(self, app, backend):
        store = ProfileStore(app.rest)
        assert store.ensure_profile("u1", "x@y.z")
        assert not store.ensure_profile("u1", "x@y.z")
        assert len(backend.table("profiles")) == 1

    def test_append_rewrites_whole_document(self, app, profile):
        profile["user_details"]["theme"] = "dark"
        store = ProfileStore(app.rest)

        written = store.append_position("user-1", _entry("AAPL"))
        written = store.append_position("user-1", _entry("MSFT"))

        assert [e.symbol for e in written] == ["AAPL", "MSFT"]
        assert profile["user_details"]["theme"] == "dark"
        assert [p["symbol"] for p in profile["user_details"]["portfolio"]] == ["AAPL", "MSFT"]

    def test_append_rereads_before_writing(self, app, profile):
        store = ProfileStore(app.rest)
        store.append_position("user-1", _entry("AAPL"))
        # Another client writes in between
        profile["user_details"]["portfolio"].append(_entry("NVDA").to_dict())

        written = store.append_position("user-1", _entry("MSFT"))
        assert [e.symbol for e in written] == ["AAPL", "NVDA", "MSFT"]

    def test_replace_portfolio_is_last_writer_wins(self, app, profile):
        store = ProfileStore(app.rest)
        store.append_position("user-1", _entry("AAPL"))
        store.append_position("user-1", _entry("MSFT"))

        store.replace_portfolio("user-1", [])
        assert profile["user_details"]["portfolio"] == []
        assert profile["user_details"]["email"] == "pm@example.com"

    def test_missing_profile_raises(self, app, backend):
        backend.table("profiles", [])
        with pytest.raises(RemoteError):
            ProfileStore(app.rest).get_portfolio("nobody")


class TestLockedPortfolio:
    def test_signed_out_is_locked_and_fetches_nothing(self, app, backend):
        view = PortfolioView(app)
        assert view.locked
        assert view.portfolio == []
        assert backend.requests_to("profiles") == []
        assert backend.requests_to("trending_tickers") == []
        assert "Sign in" in str(view.render().renderable.renderables[1])
        view.close()

    def test_sign_in_unlocks(self, app, backend):
        view = PortfolioView(app)
        _, verifier = app.session.begin_sign_in(app.config.oauth_redirect_url)
        app.session.complete_sign_in("code", verifier)

        assert not view.locked
        assert view.portfolio == []
        view.close()

    def test_sign_out_clears(self, app, signed_in, profile):
        profile["user_details"]["portfolio"] = [_entry("AAPL").to_dict()]
        view = PortfolioView(app)
        assert len(view.portfolio) == 1

        app.session.sign_out()
        assert view.locked
        assert view.portfolio == []
        view.close()


class TestPortfolioView:
    @pytest.fixture
    def view(self, app, backend, profile, scheduler):
        backend.table("securities_reference", [
            {"symbol": "NVDA", "description": "NVIDIA CORP", "cusip": "67066G104"},
            {"symbol": "NVDL", "description": "GRANITESHARES 2X NVDA"},
            {"symbol": "NVDA", "description": "NVIDIA CORP"},
            {"symbol": "AAPL", "description": "APPLE INC"},
        ])
        backend.table("trending_tickers", [_trending("NVDA", 10, 5, -1), _trending("AAPL", -3)])
        view = PortfolioView(app)
        yield view
        view.close()

    def _fill(self, view, scheduler, shares="10", price="120.5"):
        view.search("nvd")
        scheduler.run_all()
        view.select(1)
        view.shares_input = shares
        view.price_input = price

    def test_security_lookup_is_debounced_and_deduplicated(self, view, scheduler, backend):
        view.search("n")
        view.search("nv")
        assert backend.requests_to("securities_reference") == []

        scheduler.run_all()
        calls = backend.requests_to("securities_reference")
        assert len(calls) == 1
        params = calls[0].url.params
        assert params["select"] == "symbol,description"
        assert params["or"] == "(symbol.ilike.*nv*,description.ilike.*nv*)"
        assert params["limit"] == "10"
        assert [s.symbol for s in view.lookup.options] == ["NVDA", "NVDL"]

    def test_security_lookup_matches_description(self, view, scheduler):
        view.search("apple")
        scheduler.run_all()
        assert [s.symbol for s in view.lookup.options] == ["AAPL"]
        assert view.lookup.options[0].description == "APPLE INC"

    def test_close_cancels_lookup_and_stops_auth_updates(self, app, view, scheduler, backend, profile):
        profile["user_details"]["portfolio"] = [_entry("AAPL").to_dict()]
        view.fetch_portfolio()
        listeners = app.session.listener_count
        view.search("nv")
        assert scheduler.pending

        view.close()
        assert scheduler.pending == []
        assert app.session.listener_count == listeners - 1

        app.session.sign_out()
        assert scheduler.run_all() == 0
        assert backend.requests_to("securities_reference") == []
        assert view.session is not None
        assert not view.locked
        assert [p.symbol for p in view.portfolio] == ["AAPL"]

    def test_add_requires_all_fields(self, view, scheduler, profile):
        view.search("nvd")
        scheduler.run_all()
        view.select(1)
        view.shares_input = "10"
        assert not view.can_submit
        assert view.add_position() is None
        assert profile["user_details"]["portfolio"] == []

    def test_add_position(self, view, scheduler, profile):
        self._fill(view, scheduler)
        entry = view.add_position()

        assert entry.symbol == "NVDA"
        assert entry.name == "NVIDIA CORP"
        assert entry.shares == 10.0
        assert entry.avg_price == 120.5
        assert entry.cusip == "67066G104"

        stored = profile["user_details"]["portfolio"]
        assert len(stored) == 1
        assert set(stored[0]) == {"id", "symbol", "name", "cusip", "shares", "avg_price", "date_added"}

        assert [p.symbol for p in view.portfolio] == ["NVDA"]
        assert view.selected is None
        assert view.shares_input == view.price_input == ""
        assert view.lookup.text == ""
        assert view.sentiment_ratio("NVDA") == pytest.approx(2 / 3)

    def test_add_rejects_non_numeric(self, view, scheduler):
        self._fill(view, scheduler, shares="ten")
        with pytest.raises(ValueError):
            view.add_position()

    def test_add_failure_keeps_prior_state(self, view, scheduler, backend, profile):
        profile["user_details"]["portfolio"] = [_entry("AAPL").to_dict()]
        view.fetch_portfolio()
        self._fill(view, scheduler)
        backend.fail("PATCH", "profiles")

        assert view.add_position() is None
        assert [p.symbol for p in view.portfolio] == ["AAPL"]
        assert view.selected is not None
        assert not view.submitting

    def test_remove_is_optimistic_then_written(self, view, scheduler, profile):
        profile["user_details"]["portfolio"] = [
            _entry("AAPL", entry_id="a").to_dict(),
            _entry("MSFT", entry_id="m").to_dict(),
        ]
        view.fetch_portfolio()

        assert view.remove_position("a")
        assert [p.symbol for p in view.portfolio] == ["MSFT"]
        assert len(profile["user_details"]["portfolio"]) == 2

        scheduler.run_all()
        assert [p["symbol"] for p in profile["user_details"]["portfolio"]] == ["MSFT"]

    def test_failed_remove_is_not_rolled_back(self, view, scheduler, backend, profile, caplog):
        profile["user_details"]["portfolio"] = [_entry("AAPL", entry_id="a").to_dict()]
        view.fetch_portfolio()
        backend.fail("PATCH", "profiles")

        view.remove_position("a")
        scheduler.run_all()

        assert view.portfolio == []
        assert len(profile["user_details"]["portfolio"]) == 1
        assert "Error removing position a" in caplog.text

    def test_remove_unknown_id(self, view):
        assert not view.remove_position("missing")

    def test_totals_and_sort_cycle(self, view, profile):
        profile["user_details"]["portfolio"] = [
            _entry("AAPL", shares=1, price=200.0).to_dict(),
            _entry("NVDA", shares=10, price=100.0).to_dict(),
            _entry("MSFT", shares=2, price=300.0).to_dict(),
        ]
        view.fetch_portfolio()
        assert view.total_value == 1800.0

        view.toggle_sort("total")
        assert [p.symbol for p in view.rows] == ["NVDA", "MSFT", "AAPL"]
        view.toggle_sort("total")
        assert [p.symbol for p in view.rows] == ["AAPL", "MSFT", "NVDA"]
        view.toggle_sort("total")
        assert [p.symbol for p in view.rows] == ["AAPL", "NVDA", "MSFT"]

    def test_sort_by_sentiment_puts_unknown_last(self, view, profile):
        profile["user_details"]["portfolio"] = [
            _entry("TSLA").to_dict(),
            _entry("AAPL").to_dict(),
            _entry("NVDA").to_dict(),
        ]
        view.fetch_portfolio()
        view.toggle_sort("sentiment")
        assert [p.symbol for p in view.rows] == ["NVDA", "AAPL", "TSLA"]

    def test_unknown_sort_column(self, view):
        with pytest.raises(ValueError):
            view.toggle_sort("color")

    def test_animation_frames(self, view, profile):
        profile["user_details"]["portfolio"] = [_entry("NVDA").to_dict()]
        view.fetch_portfolio()
        frames = list(view.animation_frames(steps=4))
        assert len(frames) == 5

    def test_select_by_object(self, view):
        security = Security("AAPL", "APPLE INC")
        assert view.select(security) is security
        assert view.select(5) is None
