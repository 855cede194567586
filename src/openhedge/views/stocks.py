"""Stock search and per-ticker institutional ownership."""

import logging

from rich.console import Group
from rich.table import Table
from rich.text import Text

from ..analysis.metrics import latest_holder_per_fund
from ..app import AppContext
from ..market.alphavantage import PriceSeries
from ..remote.client import RemoteError
from ..storage.models import StockHolder, parse_date
from ..ui.formatting import (
    change_style,
    format_currency,
    format_large_currency,
    format_number,
    format_signed_percent,
    sparkline,
    title_case,
)
from ..ui.sorting import SortState
from .base import View

log = logging.getLogger(__name__)

HOLDER_SORT_KEYS = ("fund_name", "shares_count", "value_usd", "report_date")

OVERVIEW_FIELDS = [
    ("Name", "Name"),
    ("Sector", "Sector"),
    ("Industry", "Industry"),
    ("Exchange", "Exchange"),
    ("Market Cap", "MarketCapitalization"),
    ("P/E", "PERatio"),
    ("52W High", "52WeekHigh"),
    ("52W Low", "52WeekLow"),
]


def suggest_tickers(app: AppContext, term: str) -> list[dict]:
    """Symbols whose ticker or issuer name contains ``term``."""
    rows = (
        app.rest.from_("holdings")
        .select("symbol, issuer")
        .ilike_any(["symbol", "issuer"], term)
        .limit(10)
        .execute()
    ) or []
    return [r for r in rows if r.get("symbol")]


class _TickerSuggest:
    """Suggestion box shared by the search and detail pages."""

    def _init_suggest(self) -> None:
        self.suggest = self._search_box(
            lambda term: suggest_tickers(self.app, term),
            self.config.ticker_suggest_delay,
            min_length=2,
            key=lambda r: r["symbol"],
            name="ticker suggest",
        )

    def type(self, text: str) -> None:
        self.suggest.set_text(text)

    def submit(self, text: str | None = None) -> str | None:
        """Route for the typed ticker (Enter)."""
        text = (text if text is not None else self.suggest.text).strip()
        if not text:
            return None
        self.suggest.clear()
        return f"/stocks/{text.upper()}"

    def pick(self, index: int) -> str | None:
        options = self.suggest.options
        if not 1 <= index <= len(options):
            return None
        symbol = options[index - 1]["symbol"]
        self.suggest.clear()
        return f"/stocks/{symbol}"

    def _render_suggestions(self) -> list:
        parts = []
        for i, r in enumerate(self.suggest.options, 1):
            issuer = title_case(r["issuer"]) if r.get("issuer") else ""
            line = Text(f"  {i}. ")
            line.append(r["symbol"], style="bold")
            if issuer:
                line.append(f"  {issuer}", style="grey62")
            parts.append(line)
        return parts


class StockSearchView(_TickerSuggest, View):
    title = "Stock Search"

    def __init__(self, app: AppContext) -> None:
        super().__init__(app)
        self._init_suggest()

    def render(self):
        return Group(
            Text(self.title, style="bold"),
            Text("Institutional ownership for any US equity. Type a ticker or company.", style="grey62"),
            Text(f"> {self.suggest.text}", style="bold"),
            *self._render_suggestions(),
        )


class StockDetailView(_TickerSuggest, View):
    """Price history, fundamentals and the funds holding one ticker."""

    def __init__(self, app: AppContext, ticker: str) -> None:
        super().__init__(app)
        self._init_suggest()
        self.ticker = ticker.upper()
        self.title = self.ticker

        self.holders: list[StockHolder] = []
        self.prices: PriceSeries | None = None
        self.overview: dict = {}
        self.sort = SortState("shares_count", "desc")
        self.loading = True
        self.load()

    def load(self) -> None:
        self.loading = True
        self.sort = SortState("shares_count", "desc")
        self.prices = self.app.market.weekly_prices(self.ticker)
        self.overview = self.app.market.company_overview(self.ticker)

        try:
            rows = (
                self.app.rest.from_("holdings")
                .select(
                    """
                    shares_count, value_usd,
                    funds!inner ( id, company_name, report_date, source_url )
                    """
                )
                .eq("symbol", self.ticker)
                .execute()
            ) or []
            self.holders = latest_holder_per_fund([StockHolder.from_row(r) for r in rows])
        except RemoteError as e:
            log.error("Error fetching holders of %s: %s", self.ticker, e)
            self.holders = []
        self.loading = False

    @staticmethod
    def _value(holder: StockHolder, key: str):
        if key == "report_date":
            return parse_date(holder.report_date)
        return getattr(holder, key)

    @property
    def rows(self) -> list[StockHolder]:
        return self.sort.apply(self.holders, self._value)

    def toggle_sort(self, key: str) -> None:
        if key not in HOLDER_SORT_KEYS:
            raise ValueError(f"Unknown sort column: {key} (choose from {', '.join(HOLDER_SORT_KEYS)})")
        self.sort.toggle(key)

    @property
    def total_value(self) -> float:
        return sum(h.value_usd for h in self.holders)

    def _price_panel(self) -> list:
        parts = []
        if self.prices is None or not self.prices.points:
            return [Text("No price history available", style="dim")]

        change = self.prices.change_pct
        line = Text()
        line.append(format_currency(self.prices.current_price), style="bold")
        line.append("  ")
        line.append(f"{format_signed_percent(change)} (1Y)", style=change_style(change))
        parts.append(line)
        parts.append(Text(sparkline(self.prices.values), style=change_style(change)))
        if self.prices.synthetic:
            parts.append(Text("Simulated price data (market data unavailable)", style="yellow"))
        return parts

    def _overview_panel(self) -> Table | None:
        if not self.overview:
            return None
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="grey50")
        grid.add_column()
        for label, key in OVERVIEW_FIELDS:
            value = self.overview.get(key)
            if not value or value == "None":
                continue
            if key == "MarketCapitalization":
                try:
                    value = format_large_currency(float(value))
                except ValueError:
                    pass
            grid.add_row(label, str(value))
        return grid

    def render(self):
        if self.loading:
            return Text("Loading...", style="dim")

        parts = [Text(self.ticker, style="bold"), *self._price_panel()]
        overview = self._overview_panel()
        if overview is not None:
            parts.append(overview)

        parts.append(
            Text(
                f"{len(self.holders)} institutions · {format_large_currency(self.total_value)} reported value",
                style="grey62",
            )
        )

        ind = self.sort.indicator
        table = Table(header_style="grey62")
        table.add_column("#", justify="right", style="dim")
        table.add_column(f"Institution {ind('fund_name')}", style="bold")
        table.add_column(f"Shares Held {ind('shares_count')}", justify="right")
        table.add_column(f"Market Value {ind('value_usd')}", justify="right")
        table.add_column(f"Latest Filing {ind('report_date')}", justify="right")
        for i, h in enumerate(self.rows, 1):
            table.add_row(
                str(i),
                h.fund_name,
                format_number(h.shares_count),
                format_currency(h.value_usd),
                h.report_date,
            )
        parts.append(table)
        if self.suggest.options:
            parts.extend(self._render_suggestions())
        return Group(*parts)
