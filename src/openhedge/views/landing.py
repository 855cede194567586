"""Landing page and the fund-name search page."""

from urllib.parse import quote

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..app import AppContext
from ..ui.formatting import fund_slug
from .base import View

FEATURED_FUNDS = [
    "BRIDGEWATER", "RENAISSANCE", "CITADEL", "BERKSHIRE HATHAWAY", "TWO SIGMA",
    "MILLENNIUM", "BLACKROCK", "ELLIOTT", "TIGER GLOBAL", "D.E. SHAW",
]

FEATURES = [
    ("Fund rankings", "Latest AUM and quarterly returns across every 13F filer."),
    ("Holdings", "Full position tables with quarter-over-quarter share changes."),
    ("Stocks", "Institutional ownership of any US equity, with price history."),
    ("Trending", "Symbols with the most institutional buying and selling."),
    ("Watchlist", "Track your own positions against institutional sentiment."),
]


class LandingView(View):
    """Static landing page."""

    title = "OpenHedge"

    def render(self):
        header = Text()
        header.append("OPEN", style="bold white")
        header.append("HEDGE", style="bold grey50")

        features = Table.grid(padding=(0, 2))
        features.add_column(style="bold")
        features.add_column(style="grey62")
        for name, desc in FEATURES:
            features.add_row(name, desc)

        strip = Text("  ·  ".join(FEATURED_FUNDS), style="grey50")
        return Group(
            Panel(
                Group(
                    header,
                    Text("Institutional holdings from SEC 13F filings.", style="grey62"),
                ),
                border_style="grey23",
            ),
            strip,
            Text(""),
            features,
            Text(""),
            Text("Try: go /search, go /funds, go /stocks, go /trending", style="dim"),
        )


def search_fund_names(app: AppContext, term: str) -> list[str]:
    rows = (
        app.rest.from_("funds")
        .select("company_name")
        .ilike("company_name", f"%{term}%")
        .limit(10)
        .execute()
    ) or []
    return [r["company_name"] for r in rows if r.get("company_name")]


class SearchPageView(View):
    """Fund-name search; picking a result opens the fund page."""

    title = "Search Funds"

    def __init__(self, app: AppContext) -> None:
        super().__init__(app)
        self.box = self._search_box(
            lambda term: search_fund_names(app, term),
            self.config.fund_search_delay,
            min_length=2,
            key=lambda name: name,
            name="fund search",
        )

    def type(self, text: str) -> None:
        self.box.set_text(text)

    def pick(self, index: int) -> str | None:
        """Route for the 1-based result ``index``."""
        if not 1 <= index <= len(self.box.options):
            return None
        name = self.box.options[index - 1]
        self.box.clear()
        return f"/fund/{quote(fund_slug(name))}"

    def render(self):
        parts = [
            Text(self.title, style="bold"),
            Text("Enter a fund or holding company name to begin analysis.", style="grey62"),
            Text(f"> {self.box.text}", style="bold"),
        ]
        if self.box.searching:
            parts.append(Text("Searching...", style="dim"))
        for i, name in enumerate(self.box.options, 1):
            parts.append(Text(f"  {i}. {name}"))
        return Group(*parts)
