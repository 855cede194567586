"""Global search shown in the navigation bar: funds and stocks together."""

from urllib.parse import quote

from rich.table import Table

from ..app import AppContext
from ..storage.models import SearchOption
from ..ui.formatting import fund_slug, title_case
from ..ui.search import SearchBox

NAV_ITEMS = [
    ("Funds", "/funds"),
    ("Stocks", "/stocks"),
    ("Trending", "/trending"),
    ("Portfolio", "/portfolio"),
]

INSTITUTIONS = "Institutions"
STOCKS = "Stocks"


def search_funds_and_stocks(app: AppContext, term: str) -> list[SearchOption]:
    """Funds by company name plus tickers by symbol or issuer name."""
    funds = (
        app.rest.from_("funds_ranked")
        .select("company_name")
        .ilike("company_name", f"%{term}%")
        .limit(5)
        .execute()
    ) or []
    stocks = (
        app.rest.from_("holdings")
        .select("symbol, issuer")
        .ilike_any(["symbol", "issuer"], term)
        .limit(20)
        .execute()
    ) or []

    options = [
        SearchOption(
            type=INSTITUTIONS,
            label=f["company_name"],
            value=f["company_name"],
            sub_label="Institutional Fund",
        )
        for f in funds
        if f.get("company_name")
    ]

    seen: set[str] = set()
    for s in stocks:
        symbol = s.get("symbol")
        if not symbol or symbol in seen:
            continue
        seen.add(symbol)
        name = title_case(s["issuer"]) if s.get("issuer") else ""
        options.append(
            SearchOption(
                type=STOCKS,
                label=symbol,
                value=symbol,
                sub_label=name or "Stock Ticker",
                match_label=f"{symbol} {name}" if name else symbol,
            )
        )
    return options


def route_for_option(option: SearchOption) -> str | None:
    if option.type == INSTITUTIONS:
        return f"/fund/{quote(fund_slug(option.value))}"
    if option.type == STOCKS:
        return f"/stocks/{option.value}"
    return None


class NavSearch:
    """The navbar's search box. Empty input keeps the last options."""

    def __init__(self, app: AppContext) -> None:
        self.app = app
        self.box = SearchBox(
            lambda term: search_funds_and_stocks(app, term),
            app.config.nav_search_delay,
            min_length=1,
            hold_below_min=True,
            scheduler=app.scheduler,
            name="global search",
        )

    def select(self, option: SearchOption) -> str | None:
        """Route to open for a chosen option; clears the input."""
        self.box.set_text("")
        return route_for_option(option)

    def render(self) -> Table:
        table = Table(title=f"Results for '{self.box.text}'", show_header=True)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Group", style="dim")
        table.add_column("Match", style="bold")
        table.add_column("Detail", style="grey62")
        for i, opt in enumerate(self.box.options, 1):
            table.add_row(str(i), opt.type, opt.label, opt.sub_label)
        return table

    def close(self) -> None:
        self.box.close()
