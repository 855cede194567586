"""Fund rankings: latest AUM and recent quarterly returns per company."""

import logging
from urllib.parse import quote

from rich.console import Group
from rich.table import Table
from rich.text import Text

from ..analysis.metrics import FundRanking, build_fund_rankings
from ..app import AppContext
from ..remote.client import RemoteError
from ..storage.models import Fund, Valuation
from ..ui.formatting import change_style, format_currency, format_signed_percent, fund_slug
from ..ui.sorting import SortState
from .base import View

log = logging.getLogger(__name__)


class FundRankingsView(View):
    """All companies, sortable by name, latest AUM or any quarter's return."""

    title = "Hedge Fund Rankings"

    def __init__(self, app: AppContext) -> None:
        super().__init__(app)
        self.rankings: list[FundRanking] = []
        self.quarter_headers: list[str] = []
        self.sort = SortState("latest_aum", "desc")
        self.limit: int | None = None
        self.loading = True
        self.load()

    def load(self) -> None:
        self.loading = True
        limit = self.config.rankings_limit
        funds: list[Fund] = []
        valuations: list[Valuation] = []

        try:
            rows = (
                self.app.rest.from_("funds")
                .select("id, company_name, report_date, quarterly_return")
                .order("report_date", ascending=False)
                .limit(limit)
                .execute()
            ) or []
            funds = [Fund.from_row(r) for r in rows]
        except RemoteError as e:
            log.error("Error fetching funds: %s", e)

        try:
            # Newest first so the first valuation seen per company is its latest
            rows = (
                self.app.rest.from_("fund_valuations")
                .select("fund_id, value_usd, valuation_date, id")
                .order("valuation_date", ascending=False)
                .limit(limit)
                .execute()
            ) or []
            valuations = [Valuation.from_row(r) for r in rows]
        except RemoteError as e:
            log.error("Error fetching valuations: %s", e)

        if funds:
            self.rankings, self.quarter_headers = build_fund_rankings(funds, valuations)
        self.loading = False

    @staticmethod
    def _value(row: FundRanking, key: str):
        if key == "name":
            return row.name
        if key == "latest_aum":
            return row.latest_aum
        return row.quarters.get(key)

    @property
    def rows(self) -> list[FundRanking]:
        rows = self.sort.apply(self.rankings, self._value)
        return rows[: self.limit] if self.limit else rows

    def sort_keys(self) -> list[str]:
        return ["name", "latest_aum", *self.quarter_headers]

    def toggle_sort(self, key: str) -> None:
        if key not in self.sort_keys():
            raise ValueError(f"Unknown sort column: {key} (choose from {', '.join(self.sort_keys())})")
        self.sort.toggle(key)

    def pick(self, index: int) -> str | None:
        rows = self.rows
        if not 1 <= index <= len(rows):
            return None
        return f"/fund/{quote(fund_slug(rows[index - 1].name))}"

    def render(self):
        if self.loading:
            return Text("Loading...", style="dim")

        table = Table(show_lines=False, header_style="grey62")
        table.add_column("#", justify="right", style="dim")
        table.add_column(f"Fund Name {self.sort.indicator('name')}", style="bold")
        table.add_column(f"Latest AUM {self.sort.indicator('latest_aum')}", justify="right")
        for d in self.quarter_headers:
            table.add_column(f"{d} {self.sort.indicator(d)}", justify="right")

        for i, row in enumerate(self.rows, 1):
            cells = [str(i), row.name, format_currency(row.latest_aum)]
            for d in self.quarter_headers:
                ret = row.quarters.get(d)
                cells.append(Text(format_signed_percent(ret), style=change_style(ret) if ret is not None else "grey30"))
            table.add_row(*cells)

        return Group(
            Text(self.title, style="bold"),
            Text(
                "Comparative performance and latest AUM analysis based on SEC 13F filings.",
                style="grey50",
            ),
            table,
        )
