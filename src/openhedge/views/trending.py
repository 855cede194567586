"""Institutional flows: symbols with the most buying and selling activity."""

import logging

from rich.console import Group
from rich.table import Table
from rich.text import Text

from ..analysis.metrics import active_institutions, flow_extremes, trending_stats
from ..app import AppContext
from ..storage.models import TrendingTicker
from ..ui.formatting import change_style, format_large_currency, format_number
from ..ui.paging import PagedLoader
from ..ui.sorting import SortState
from .base import View

log = logging.getLogger(__name__)

# Sort keys are store columns; the payload's total_value mirrors total_value_usd
SORT_COLUMNS = ("total_value_usd", "total_shares_bought", "institution_count", "symbol")


def _signed_currency(value: float) -> str:
    sign = "+" if value > 0 else "-" if value < 0 else ""
    return f"{sign}{format_large_currency(abs(value))}"


class TrendingView(View):
    """Trending tickers, 20 per batch, ordered by the store."""

    title = "Institutional Flows"

    def __init__(self, app: AppContext) -> None:
        super().__init__(app)
        self.search_term = ""
        self.sort = SortState("total_value_usd", "desc")
        self.expanded: set[str] = set()
        self.loader = PagedLoader(
            self._fetch_page,
            self.config.trending_batch_size,
            key=lambda t: t.symbol,
            name="trending tickers",
        )
        self.loader.load_next()

    def _fetch_page(self, start: int, end: int) -> list[TrendingTicker]:
        query = self.app.rest.from_("trending_tickers").select("*")
        if self.search_term:
            query = query.ilike("symbol", f"%{self.search_term}%")
        query = query.order(self.sort.key, ascending=self.sort.ascending)
        # Tie-break so page boundaries are stable
        if self.sort.key != "symbol":
            query = query.order("symbol", ascending=True)
        rows = query.range(start, end).execute()
        return [TrendingTicker.from_row(r) for r in rows or []]

    def reset(self) -> None:
        self.loader.reset()
        self.expanded.clear()
        self.loader.load_next()

    def search(self, text: str) -> None:
        """Filter by ticker substring. Applied immediately, not debounced."""
        self.search_term = text.strip().upper()
        self.reset()

    def toggle_sort(self, key: str) -> None:
        if key not in SORT_COLUMNS:
            raise ValueError(f"Unknown sort column: {key} (choose from {', '.join(SORT_COLUMNS)})")
        self.sort.toggle(key)
        self.reset()

    def load_more(self) -> int:
        return self.loader.load_next()

    def on_row_visible(self, index: int) -> int:
        return self.loader.on_row_visible(index)

    def toggle_expand(self, symbol: str) -> bool:
        """Show or hide the per-institution breakdown; returns the new state."""
        symbol = symbol.upper()
        if symbol in self.expanded:
            self.expanded.discard(symbol)
            return False
        self.expanded.add(symbol)
        return True

    @property
    def rows(self) -> list[TrendingTicker]:
        return self.loader.rows

    @property
    def has_more(self) -> bool:
        return self.loader.has_more

    def extremes(self) -> tuple[TrendingTicker | None, TrendingTicker | None]:
        if self.search_term:
            return None, None
        return flow_extremes(self.rows)

    def _cards(self) -> Table | None:
        inflow, outflow = self.extremes()
        if inflow is None and outflow is None:
            return None
        grid = Table.grid(padding=(0, 4))
        grid.add_column()
        grid.add_column()
        labels, values = [], []
        if inflow is not None:
            labels.append(Text("Max Inflow", style="grey50"))
            values.append(Text(f"{inflow.symbol} {_signed_currency(inflow.total_value)}", style="green"))
        if outflow is not None:
            labels.append(Text("Max Outflow", style="grey50"))
            values.append(Text(f"{outflow.symbol} {_signed_currency(outflow.total_value)}", style="red"))
        grid.add_row(*labels)
        grid.add_row(*values)
        return grid

    def _detail(self, ticker: TrendingTicker) -> Table:
        table = Table(show_header=True, header_style="grey50", box=None, padding=(0, 2))
        table.add_column("Institution")
        table.add_column("Shares", justify="right")
        table.add_column("Value", justify="right")
        for flow in active_institutions(ticker):
            table.add_row(
                flow.institution,
                Text(f"{'+' if flow.shares > 0 else ''}{format_number(flow.shares)}", style=change_style(flow.shares)),
                Text(_signed_currency(flow.value), style=change_style(flow.value)),
            )
        return table

    def render(self):
        parts = [
            Text(self.title, style="bold"),
            Text("Identifying stocks with the highest velocity of institutional movement.", style="grey62"),
        ]
        if self.search_term:
            parts.append(Text(f"Filter: {self.search_term}", style="grey50"))
        cards = self._cards()
        if cards is not None:
            parts.append(cards)

        ind = self.sort.indicator
        table = Table(header_style="grey62")
        table.add_column("#", justify="right", style="dim")
        table.add_column(f"Symbol {ind('symbol')}", style="bold")
        table.add_column(f"Net Value {ind('total_value_usd')}", justify="right")
        table.add_column(f"Net Shares {ind('total_shares_bought')}", justify="right")
        table.add_column(f"Active {ind('institution_count')}", justify="right")
        for i, ticker in enumerate(self.rows, 1):
            stats = trending_stats(ticker)
            table.add_row(
                str(i),
                ("▾ " if ticker.symbol in self.expanded else "▸ ") + ticker.symbol,
                Text(_signed_currency(stats.net_value), style=change_style(stats.net_value)),
                Text(format_number(stats.net_shares), style=change_style(stats.net_shares)),
                str(stats.active_count),
            )
        parts.append(table)

        for ticker in self.rows:
            if ticker.symbol in self.expanded:
                parts.append(Text(ticker.symbol, style="bold"))
                parts.append(self._detail(ticker))

        if self.loader.loading:
            parts.append(Text("Loading...", style="dim"))
        elif self.has_more:
            parts.append(Text("more rows available (more)", style="dim"))
        elif not self.rows:
            parts.append(Text("No trending tickers found.", style="grey50"))
        return Group(*parts)
