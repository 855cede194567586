"""The signed-in user's watchlist."""

import logging

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..analysis.metrics import Sentiment, portfolio_total, sentiment
from ..app import AppContext
from ..remote.auth import Session
from ..remote.client import RemoteError
from ..session import INITIAL_SESSION
from ..storage.models import PortfolioEntry, Security, TrendingTicker
from ..ui.formatting import SentimentRing, format_currency, format_number
from ..ui.sorting import CYCLE_WITH_UNSORTED, SortState
from .base import View

log = logging.getLogger(__name__)

SORT_KEYS = ("symbol", "name", "shares", "avg_price", "total", "sentiment")


def search_securities(app: AppContext, term: str) -> list[Security]:
    """Substring lookup of tradable securities by symbol or description."""
    rows = (
        app.rest.from_("securities_reference")
        .select("symbol, description")
        .ilike_any(["symbol", "description"], term)
        .limit(10)
        .execute()
    ) or []
    return [Security.from_row(r) for r in rows]


class PortfolioView(View):
    """Watchlist positions with institutional sentiment per symbol.

    Signed out, the view is locked and fetches nothing. Adding a position
    re-reads and rewrites the whole profile document; removing one updates
    the local list first and writes in the background without rollback.
    """

    title = "My Portfolio"

    def __init__(self, app: AppContext) -> None:
        super().__init__(app)
        self.session: Session | None = None
        self.portfolio: list[PortfolioEntry] = []
        self.sentiments: dict[str, Sentiment] = {}
        self.sort = SortState(None, None, cycle=CYCLE_WITH_UNSORTED)
        self.loading = True
        self.submitting = False

        self.selected: Security | None = None
        self.shares_input = ""
        self.price_input = ""
        self.lookup = self._search_box(
            lambda term: search_securities(app, term),
            self.config.security_search_delay,
            min_length=1,
            key=lambda s: s.symbol,
            name="security lookup",
        )

        self.session = self._watch_session()
        if self.session is not None:
            self.fetch_portfolio()
        self.loading = False

    @property
    def locked(self) -> bool:
        return self.session is None

    def on_auth_change(self, event: str, session: Session | None) -> None:
        if event == INITIAL_SESSION:
            return
        self.session = session
        if session is not None:
            self.fetch_portfolio()
        else:
            self.portfolio = []
            self.sentiments = {}
        self.loading = False

    # -- data ----------------------------------------------------------------

    def fetch_portfolio(self) -> None:
        if self.session is None:
            return
        try:
            self.portfolio = self.app.profiles.get_portfolio(self.session.user_id)
        except RemoteError as e:
            log.error("Error fetching portfolio: %s", e)
            return
        self.fetch_sentiment()

    def fetch_sentiment(self) -> None:
        symbols = sorted({p.symbol for p in self.portfolio if p.symbol})
        if not symbols:
            self.sentiments = {}
            return
        try:
            rows = (
                self.app.rest.from_("trending_tickers").select("*").in_("symbol", symbols).execute()
            ) or []
        except RemoteError as e:
            log.error("Error fetching sentiment: %s", e)
            return
        self.sentiments = {
            t.symbol: sentiment(t) for t in (TrendingTicker.from_row(r) for r in rows)
        }

    # -- add -----------------------------------------------------------------

    def search(self, text: str) -> None:
        self.lookup.set_text(text)

    def select(self, security: Security | int) -> Security | None:
        """Choose a lookup result, either directly or by 1-based index."""
        if isinstance(security, int):
            options = self.lookup.options
            if not 1 <= security <= len(options):
                return None
            security = options[security - 1]
        self.selected = security
        return security

    @property
    def can_submit(self) -> bool:
        return bool(
            self.session is not None
            and self.selected is not None
            and self.shares_input.strip()
            and self.price_input.strip()
            and not self.submitting
        )

    def add_position(self) -> PortfolioEntry | None:
        """
        Append the selected security to the watchlist.

        Returns:
            The new entry, or None if the form is incomplete or the write failed

        Raises:
            ValueError: If shares or price is not a number
        """
        if not self.can_submit:
            return None
        shares = float(self.shares_input)
        price = float(self.price_input)

        self.submitting = True
        entry = PortfolioEntry.new(
            symbol=self.selected.symbol,
            name=self.selected.description,
            shares=shares,
            avg_price=price,
            cusip=self.selected.cusip,
        )
        try:
            self.portfolio = self.app.profiles.append_position(self.session.user_id, entry)
        except RemoteError as e:
            log.error("Error adding %s: %s", entry.symbol, e)
            return None
        finally:
            self.submitting = False

        self.selected = None
        self.shares_input = ""
        self.price_input = ""
        self.lookup.clear()
        self.fetch_sentiment()
        return entry

    # -- remove --------------------------------------------------------------

    def remove_position(self, entry_id: str) -> bool:
        """Drop a position locally now and persist it in the background."""
        if self.session is None:
            return False
        remaining = [p for p in self.portfolio if p.id != entry_id]
        if len(remaining) == len(self.portfolio):
            return False
        self.portfolio = remaining

        user_id = self.session.user_id

        def write() -> None:
            try:
                self.app.profiles.replace_portfolio(user_id, remaining)
            except RemoteError as e:
                # No rollback: the local list stays ahead of the store
                log.error("Error removing position %s: %s", entry_id, e)

        self.app.scheduler.call_later(0, write)
        return True

    # -- derived -------------------------------------------------------------

    @property
    def total_value(self) -> float:
        return portfolio_total(self.portfolio)

    def sentiment_ratio(self, symbol: str) -> float | None:
        s = self.sentiments.get(symbol)
        return s.ratio if s is not None else None

    def _value(self, entry: PortfolioEntry, key: str):
        if key == "total":
            return entry.cost_basis
        if key == "sentiment":
            return self.sentiment_ratio(entry.symbol)
        return getattr(entry, key)

    @property
    def rows(self) -> list[PortfolioEntry]:
        return self.sort.apply(self.portfolio, self._value)

    def toggle_sort(self, key: str) -> None:
        if key not in SORT_KEYS:
            raise ValueError(f"Unknown sort column: {key} (choose from {', '.join(SORT_KEYS)})")
        self.sort.toggle(key)

    # -- render --------------------------------------------------------------

    def _locked(self) -> Panel:
        return Panel(
            Group(
                Text("Portfolio Tracking", style="bold"),
                Text("Sign in to build your watchlist and track position performance.", style="grey62"),
                Text("Run: openhedge login", style="dim"),
            ),
            border_style="grey23",
        )

    def render(self, rings: dict[str, SentimentRing] | None = None):
        if self.loading:
            return Text("Loading...", style="dim")
        if self.locked:
            return self._locked()

        summary = Table.grid(padding=(0, 4))
        summary.add_column()
        summary.add_column()
        summary.add_row(Text("Total Value", style="grey50"), Text("Positions", style="grey50"))
        summary.add_row(Text(format_currency(self.total_value), style="bold"), str(len(self.portfolio)))

        ind = self.sort.indicator
        table = Table(header_style="grey62")
        table.add_column("#", justify="right", style="dim")
        table.add_column(f"Symbol {ind('symbol')}", style="bold")
        table.add_column(f"Name {ind('name')}")
        table.add_column(f"Shares {ind('shares')}", justify="right")
        table.add_column(f"Avg Price {ind('avg_price')}", justify="right")
        table.add_column(f"Total {ind('total')}", justify="right")
        table.add_column(f"Sentiment {ind('sentiment')}")
        table.add_column("ID", style="dim")
        for i, p in enumerate(self.rows, 1):
            ring = (rings or {}).get(p.symbol) or SentimentRing(self.sentiment_ratio(p.symbol))
            table.add_row(
                str(i),
                p.symbol,
                p.name,
                format_number(p.shares),
                format_currency(p.avg_price),
                format_currency(p.cost_basis),
                ring,
                p.id[:8],
            )

        parts = [Text(self.title, style="bold"), summary, table]
        if not self.portfolio:
            parts.append(Text("No positions yet. Search a security to add one.", style="grey50"))
        if self.lookup.text:
            parts.append(Text(f"Lookup: {self.lookup.text}", style="grey50"))
            for i, s in enumerate(self.lookup.options, 1):
                parts.append(Text(f"  {i}. {s.label}"))
        if self.selected is not None:
            parts.append(Text(f"Selected: {self.selected.label}", style="cyan"))
        return Group(*parts)

    def animation_frames(self, steps: int = 10):
        """Renderables with every sentiment ring filling from empty."""
        frames_by_symbol = {
            p.symbol: list(SentimentRing(self.sentiment_ratio(p.symbol)).frames(steps))
            for p in self.portfolio
        }
        for i in range(steps + 1):
            yield self.render({symbol: frames[i] for symbol, frames in frames_by_symbol.items()})
