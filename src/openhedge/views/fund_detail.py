"""Fund dashboard: filing history, valuation chart and the holdings table."""

import logging
from dataclasses import dataclass
from urllib.parse import unquote

from rich.console import Group
from rich.table import Table
from rich.text import Text

from ..analysis.metrics import ShareChange, portfolio_weights, previous_fund, share_change
from ..app import AppContext
from ..remote.client import RemoteError
from ..storage.models import Fund, Holding, Valuation
from ..ui.formatting import (
    change_style,
    format_currency,
    format_large_currency,
    format_number,
    format_percent,
    format_signed_percent,
    sparkline,
)
from ..ui.paging import PagedLoader
from ..ui.sorting import SortState
from .base import View

log = logging.getLogger(__name__)

# Table columns that map onto store columns; "weight" is value_usd relative
# to the loaded rows, so it orders the same way.
REMOTE_SORT_COLUMNS = {
    "symbol": "symbol",
    "issuer": "issuer",
    "shares_count": "shares_count",
    "value_usd": "value_usd",
    "weight": "value_usd",
}
CLIENT_SORT_COLUMNS = {"change"}


def decode_fund_slug(slug: str) -> str:
    """Company name from a ``/fund/<slug>`` route segment."""
    return unquote(slug).replace("-", " ")


@dataclass
class HoldingRow:
    holding: Holding
    weight: float
    change: ShareChange


class FundDetailView(View):
    """One company's 13F filings.

    The holdings table is fetched 50 rows at a time, ordered by the store.
    Sorting by share change has no store column, so it loads every holding
    of the period once and sorts locally.
    """

    def __init__(self, app: AppContext, slug: str) -> None:
        super().__init__(app)
        self.company_name = decode_fund_slug(slug)
        self.title = self.company_name

        self.history: list[Fund] = []
        self.fund: Fund | None = None
        self.prev_fund: Fund | None = None
        self.valuations: list[Valuation] = []
        self.prev_shares: dict[str, int] = {}
        self.loading = True

        self.sort = SortState("value_usd", "desc")
        self.loader = PagedLoader(
            self._fetch_page,
            self.config.fund_page_size,
            key=lambda h: h.id if h.id is not None else (h.symbol, h.shares_count),
            name="holdings",
        )

        self.load_history()
        if self.history:
            self.select_fund(self.history[0].id)
        self.loading = False

    # -- data ----------------------------------------------------------------

    def load_history(self) -> None:
        try:
            rows = (
                self.app.rest.from_("funds")
                .select("*")
                .eq("company_name", self.company_name)
                .order("report_date", ascending=False)
                .execute()
            ) or []
        except RemoteError as e:
            log.error("Error fetching history for %s: %s", self.company_name, e)
            rows = []
        self.history = [Fund.from_row(r) for r in rows]

    def periods(self) -> list[str]:
        return [f.report_date for f in self.history]

    def select_period(self, report_date: str) -> bool:
        for f in self.history:
            if f.report_date == report_date:
                self.select_fund(f.id)
                return True
        return False

    def select_fund(self, fund_id: int) -> None:
        """Switch the dashboard to one filing and reload its context."""
        self.fund = next((f for f in self.history if f.id == fund_id), None)
        if self.fund is None:
            return
        self.prev_fund = previous_fund(self.history, fund_id)

        try:
            rows = (
                self.app.rest.from_("fund_valuations")
                .select("valuation_date, value_usd")
                .eq("fund_id", fund_id)
                .order("valuation_date", ascending=True)
                .execute()
            ) or []
            self.valuations = [Valuation.from_row({**r, "fund_id": fund_id}) for r in rows]
        except RemoteError as e:
            log.error("Error fetching valuations for fund %s: %s", fund_id, e)
            self.valuations = []

        self.prev_shares = {}
        if self.prev_fund is not None:
            try:
                rows = (
                    self.app.rest.from_("holdings")
                    .select("symbol, shares_count")
                    .eq("fund_id", self.prev_fund.id)
                    .execute()
                ) or []
                self.prev_shares = {r["symbol"]: int(r.get("shares_count") or 0) for r in rows}
            except RemoteError as e:
                log.error("Error fetching previous holdings for fund %s: %s", self.prev_fund.id, e)

        self.reload()

    def _query(self):
        return self.app.rest.from_("holdings").select("*").eq("fund_id", self.fund.id)

    def _fetch_page(self, start: int, end: int) -> list[Holding]:
        column = REMOTE_SORT_COLUMNS.get(self.sort.key, "value_usd")
        rows = self._query().order(column, ascending=self.sort.ascending).range(start, end).execute()
        return [Holding.from_row(r) for r in rows or []]

    def _fetch_all_by_change(self) -> None:
        try:
            rows = self._query().order("value_usd", ascending=False).execute() or []
        except RemoteError as e:
            log.error("Error fetching holdings for fund %s: %s", self.fund.id, e)
            return
        holdings = [Holding.from_row(r) for r in rows]
        ordered = self.sort.apply(holdings, lambda h, _key: self._change(h).sort_value)
        self.loader.replace(ordered)

    def reload(self) -> None:
        """Refetch the holdings table from the first page."""
        self.loader.reset()
        if self.fund is None:
            return
        if self.sort.key in CLIENT_SORT_COLUMNS:
            self._fetch_all_by_change()
        else:
            self.loader.load_next()

    def load_more(self) -> int:
        return self.loader.load_next()

    def on_row_visible(self, index: int) -> int:
        return self.loader.on_row_visible(index)

    def toggle_sort(self, key: str) -> None:
        if key not in REMOTE_SORT_COLUMNS and key not in CLIENT_SORT_COLUMNS:
            raise ValueError(f"Unknown sort column: {key}")
        self.sort.toggle(key)
        self.reload()

    # -- derived -------------------------------------------------------------

    def _change(self, holding: Holding) -> ShareChange:
        return share_change(
            holding.shares_count,
            self.prev_shares.get(holding.symbol),
            has_previous_period=self.prev_fund is not None,
        )

    @property
    def rows(self) -> list[HoldingRow]:
        holdings = self.loader.rows
        weights = portfolio_weights(holdings)
        return [HoldingRow(h, w, self._change(h)) for h, w in zip(holdings, weights)]

    @property
    def has_more(self) -> bool:
        return self.loader.has_more

    # -- render --------------------------------------------------------------

    def _header(self) -> Table:
        grid = Table.grid(padding=(0, 3))
        for _ in range(4):
            grid.add_column()
        ret = self.fund.quarterly_return
        latest = self.valuations[-1].value_usd if self.valuations else None
        grid.add_row(
            Text("Report Period", style="grey50"),
            Text("Quarterly Return", style="grey50"),
            Text("Holdings", style="grey50"),
            Text("Latest Valuation", style="grey50"),
        )
        grid.add_row(
            Text(self.fund.report_date, style="bold"),
            Text(format_signed_percent(ret), style=change_style(ret)),
            Text(format_number(self.fund.holdings_count) if self.fund.holdings_count else "-"),
            Text(format_large_currency(latest) if latest else "-"),
        )
        return grid

    def render(self):
        if self.loading:
            return Text("Loading...", style="dim")
        if self.fund is None:
            return Text(f"No filings found for {self.company_name}", style="yellow")

        parts = [Text(self.company_name, style="bold"), self._header()]
        if self.fund.source_url:
            parts.append(Text(f"Source: {self.fund.source_url}", style="grey50"))
        if len(self.history) > 1:
            parts.append(Text("Periods: " + ", ".join(self.periods()), style="grey50"))

        values = [v.value_usd for v in self.valuations]
        if values:
            parts.append(Text(sparkline(values), style="white"))

        ind = self.sort.indicator
        table = Table(header_style="grey62")
        table.add_column("#", justify="right", style="dim")
        table.add_column(f"Symbol {ind('symbol')}", style="bold")
        table.add_column(f"Issuer {ind('issuer')}")
        table.add_column(f"Shares {ind('shares_count')}", justify="right")
        table.add_column(f"Value {ind('value_usd')}", justify="right")
        table.add_column(f"Weight {ind('weight')}", justify="right")
        table.add_column(f"Change {ind('change')}", justify="right")

        for i, row in enumerate(self.rows, 1):
            change = row.change
            if change.change_type == "NEW":
                style = "cyan"
            elif change.change_type in ("INCREASE", "DECREASE"):
                style = change_style(change.delta)
            else:
                style = "grey50"
            table.add_row(
                str(i),
                row.holding.symbol,
                row.holding.issuer,
                format_number(row.holding.shares_count),
                format_currency(row.holding.value_usd),
                format_percent(row.weight),
                Text(change.label(), style=style),
            )
        parts.append(table)
        if self.has_more:
            parts.append(Text("more rows available (more)", style="dim"))
        return Group(*parts)
