"""OpenHedge CLI."""

import logging
import shlex
import time
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .app import AppContext, create_app
from .config import Config, get_config
from .remote.auth import wait_for_oauth_code
from .router import HOME, open_view
from .storage.exports import export_dataframe, fund_holdings_to_dataframe, stock_holders_to_dataframe
from .views import (
    FundDetailView,
    FundRankingsView,
    LoginView,
    NavSearch,
    PortfolioView,
    StockDetailView,
    StockSearchView,
    TrendingView,
    View,
)
from .views.portfolio import search_securities

log = logging.getLogger(__name__)

# How long one-shot commands wait for a debounced search to settle
SEARCH_TIMEOUT = 10.0


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _app(ctx: click.Context) -> AppContext:
    config: Config = ctx.obj["config"]
    app = create_app(config)
    ctx.call_on_close(app.close)
    return app


def _apply_sort(view: View, key: str | None, ascending: bool) -> None:
    """Sort ``view`` by ``key``: descending first, then ascending if asked."""
    if not key:
        return
    try:
        if view.sort.key != key or not view.sort.active:
            view.toggle_sort(key)
        if ascending and not view.sort.ascending:
            view.toggle_sort(key)
    except ValueError as e:
        raise click.ClickException(str(e))


def _load_pages(view: View, pages: int) -> None:
    for _ in range(max(pages - 1, 0)):
        if not view.has_more or not view.load_more():
            break


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """OpenHedge - institutional holdings from SEC 13F filings."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = get_config()
    except ValueError as e:
        raise click.ClickException(str(e))
    ctx.obj["console"] = Console()


# =============================================================================
# Funds
# =============================================================================


@cli.command("funds")
@click.option("--sort", "sort_key", help="Column: name, latest_aum or a report date")
@click.option("--asc", "ascending", is_flag=True, help="Ascending order")
@click.option("--limit", default=50, help="Rows to show (default: 50)")
@click.pass_context
def funds(ctx: click.Context, sort_key: str | None, ascending: bool, limit: int) -> None:
    """Rank funds by latest AUM and quarterly returns."""
    app = _app(ctx)
    view = FundRankingsView(app)
    _apply_sort(view, sort_key, ascending)

    if not view.rankings:
        click.echo("No funds found.")
        return
    view.limit = limit
    ctx.obj["console"].print(view.render())


@cli.command("fund")
@click.argument("name")
@click.option("--period", help="Report date (default: latest)")
@click.option("--sort", "sort_key", help="Column: symbol, issuer, shares_count, value_usd, weight, change")
@click.option("--asc", "ascending", is_flag=True, help="Ascending order")
@click.option("--pages", default=1, help="Batches of holdings to load (default: 1)")
@click.pass_context
def fund(
    ctx: click.Context,
    name: str,
    period: str | None,
    sort_key: str | None,
    ascending: bool,
    pages: int,
) -> None:
    """Show a fund's filing and holdings."""
    app = _app(ctx)
    view = FundDetailView(app, name)
    if view.fund is None:
        raise click.ClickException(f"No filings found for '{view.company_name}'")

    if period and not view.select_period(period):
        raise click.ClickException(
            f"No filing for period {period}. Available: {', '.join(view.periods())}"
        )
    _apply_sort(view, sort_key, ascending)
    _load_pages(view, pages)
    ctx.obj["console"].print(view.render())


# =============================================================================
# Stocks
# =============================================================================


@cli.command("stocks")
@click.argument("query")
@click.pass_context
def stocks(ctx: click.Context, query: str) -> None:
    """Suggest tickers matching a symbol or company name."""
    app = _app(ctx)
    view = StockSearchView(app)
    view.type(query)
    view.wait_idle(SEARCH_TIMEOUT)
    try:
        if not view.suggest.options:
            click.echo(f"No tickers match '{query}'.")
            return
        ctx.obj["console"].print(view.render())
    finally:
        view.close()


@cli.command("stock")
@click.argument("ticker")
@click.option("--sort", "sort_key", help="Column: fund_name, shares_count, value_usd, report_date")
@click.option("--asc", "ascending", is_flag=True, help="Ascending order")
@click.pass_context
def stock(ctx: click.Context, ticker: str, sort_key: str | None, ascending: bool) -> None:
    """Show price history and institutional holders of a ticker."""
    app = _app(ctx)
    view = StockDetailView(app, ticker)
    _apply_sort(view, sort_key, ascending)
    ctx.obj["console"].print(view.render())


@cli.command("trending")
@click.option("--search", "term", default="", help="Filter by ticker substring")
@click.option("--sort", "sort_key", help="Column: total_value_usd, total_shares_bought, institution_count, symbol")
@click.option("--asc", "ascending", is_flag=True, help="Ascending order")
@click.option("--pages", default=1, help="Batches to load (default: 1)")
@click.option("--expand", multiple=True, help="Show institution detail for a symbol")
@click.pass_context
def trending(
    ctx: click.Context,
    term: str,
    sort_key: str | None,
    ascending: bool,
    pages: int,
    expand: tuple[str, ...],
) -> None:
    """Show symbols with the most institutional buying and selling."""
    app = _app(ctx)
    view = TrendingView(app)
    if term:
        view.search(term)
    _apply_sort(view, sort_key, ascending)
    _load_pages(view, pages)
    for symbol in expand:
        view.toggle_expand(symbol)
    ctx.obj["console"].print(view.render())


@cli.command("search")
@click.argument("term")
@click.pass_context
def search(ctx: click.Context, term: str) -> None:
    """Search funds and stocks together."""
    app = _app(ctx)
    nav = NavSearch(app)
    nav.box.set_text(term)
    nav.box.wait_idle(SEARCH_TIMEOUT)
    try:
        if not nav.box.options:
            click.echo(f"Nothing matches '{term}'.")
            return
        ctx.obj["console"].print(nav.render())
    finally:
        nav.close()


# =============================================================================
# Portfolio
# =============================================================================


def _portfolio_view(ctx: click.Context) -> PortfolioView:
    app = _app(ctx)
    view = PortfolioView(app)
    ctx.call_on_close(view.close)
    if view.locked:
        raise click.ClickException("Not signed in. Run 'openhedge login' first.")
    return view


@cli.group("portfolio")
def portfolio() -> None:
    """Manage your watchlist (requires sign-in)."""


@portfolio.command("show")
@click.option("--sort", "sort_key", help="Column: symbol, name, shares, avg_price, total, sentiment")
@click.option("--asc", "ascending", is_flag=True, help="Ascending order")
@click.option("--animate", is_flag=True, help="Animate the sentiment rings")
@click.pass_context
def portfolio_show(ctx: click.Context, sort_key: str | None, ascending: bool, animate: bool) -> None:
    """Show watchlist positions with sentiment."""
    from rich.live import Live

    view = _portfolio_view(ctx)
    _apply_sort(view, sort_key, ascending)
    console = ctx.obj["console"]
    if not animate:
        console.print(view.render())
        return
    with Live(console=console, refresh_per_second=20) as live:
        for frame in view.animation_frames():
            live.update(frame)
            time.sleep(0.05)


@portfolio.command("add")
@click.argument("symbol")
@click.option("--shares", required=True, help="Number of shares")
@click.option("--price", required=True, help="Average price per share")
@click.pass_context
def portfolio_add(ctx: click.Context, symbol: str, shares: str, price: str) -> None:
    """Add a position to the watchlist."""
    view = _portfolio_view(ctx)
    matches = search_securities(view.app, symbol)
    security = next((s for s in matches if s.symbol.upper() == symbol.upper()), None)
    if security is None:
        hint = f" Did you mean: {', '.join(s.symbol for s in matches[:5])}?" if matches else ""
        raise click.ClickException(f"Unknown security '{symbol}'.{hint}")

    view.select(security)
    view.shares_input = shares
    view.price_input = price
    try:
        entry = view.add_position()
    except ValueError:
        raise click.ClickException("Shares and price must be numbers")
    if entry is None:
        raise click.ClickException(f"Could not add {security.symbol}; see log for details")
    click.echo(f"Added {entry.symbol}: {entry.shares:g} @ {entry.avg_price:g} (id {entry.id[:8]})")


@portfolio.command("remove")
@click.argument("entry_id")
@click.pass_context
def portfolio_remove(ctx: click.Context, entry_id: str) -> None:
    """Remove a position by id (or unique id prefix)."""
    view = _portfolio_view(ctx)
    candidates = [p for p in view.portfolio if p.id.startswith(entry_id)]
    if len(candidates) != 1:
        raise click.ClickException(
            f"No position with id '{entry_id}'" if not candidates else f"Ambiguous id '{entry_id}'"
        )
    entry = candidates[0]
    view.remove_position(entry.id)
    # The write runs in the background; let it finish before exiting
    view.app.scheduler.join(SEARCH_TIMEOUT)
    click.echo(f"Removed {entry.symbol}")


# =============================================================================
# Auth
# =============================================================================


@cli.command("login")
@click.option("--no-browser", is_flag=True, help="Print the URL instead of opening a browser")
@click.pass_context
def login(ctx: click.Context, no_browser: bool) -> None:
    """Sign in with OAuth."""
    app = _app(ctx)
    config = app.config
    view = LoginView(app)
    if view.redirect is not None:
        click.echo("Already signed in.")
        return

    url = view.start()
    click.echo(f"Open this URL to sign in:\n{url}")
    if not no_browser:
        click.launch(url)

    click.echo(f"Waiting for the redirect on {config.oauth_redirect_url} ...")
    code = wait_for_oauth_code(config.oauth_callback_port)
    if not code:
        raise click.ClickException("Sign-in was cancelled or timed out")
    session = view.complete(code)
    if session is None:
        raise click.ClickException(f"Sign-in failed: {view.error}")
    click.echo(f"Signed in as {session.email or session.user_id}")


@cli.command("logout")
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Sign out and forget the stored session."""
    app = _app(ctx)
    if app.session.get_session() is None:
        click.echo("Not signed in.")
        return
    app.session.sign_out()
    click.echo("Signed out.")


@cli.command("whoami")
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the signed-in user."""
    app = _app(ctx)
    session = app.session.get_session()
    if session is None:
        click.echo("Not signed in.")
        return
    click.echo(f"{session.email or '-'} ({session.user_id})")


# =============================================================================
# Export
# =============================================================================


@cli.group("export")
def export() -> None:
    """Export tables to CSV or Parquet."""


@export.command("fund")
@click.argument("name")
@click.option("--period", help="Report date (default: latest)")
@click.option("--format", "fmt", type=click.Choice(["csv", "parquet"]), default="csv")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.pass_context
def export_fund(ctx: click.Context, name: str, period: str | None, fmt: str, output: str | None) -> None:
    """Export every holding of a fund's filing."""
    app = _app(ctx)
    view = FundDetailView(app, name)
    if view.fund is None:
        raise click.ClickException(f"No filings found for '{view.company_name}'")
    if period and not view.select_period(period):
        raise click.ClickException(f"No filing for period {period}")

    while view.has_more and view.load_more():
        pass

    rows = view.rows
    df = fund_holdings_to_dataframe(
        view.fund,
        [r.holding for r in rows],
        [r.weight for r in rows],
        [r.change.label() for r in rows],
    )
    path = export_dataframe(
        df,
        Path(output) if output else app.config.exports_dir,
        f"{view.company_name}_{view.fund.report_date}",
        fmt,
    )
    click.echo(f"Exported {len(df)} holdings: {path}")


@export.command("stock")
@click.argument("ticker")
@click.option("--format", "fmt", type=click.Choice(["csv", "parquet"]), default="csv")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.pass_context
def export_stock(ctx: click.Context, ticker: str, fmt: str, output: str | None) -> None:
    """Export the institutional holders of a ticker."""
    app = _app(ctx)
    view = StockDetailView(app, ticker)
    df = stock_holders_to_dataframe(view.ticker, view.rows)
    path = export_dataframe(
        df, Path(output) if output else app.config.exports_dir, f"{view.ticker}_holders", fmt
    )
    click.echo(f"Exported {len(df)} holders: {path}")


# =============================================================================
# Interactive browser
# =============================================================================

BROWSE_HELP = [
    ("go PATH", "Open a route, e.g. go /funds, go /stocks/AAPL"),
    ("back", "Return to the previous page"),
    ("find TEXT", "Global search of funds and stocks"),
    ("open N", "Open result N of the last global search"),
    ("type TEXT", "Type into the page's search box"),
    ("pick N", "Open result N of the page's search box or table"),
    ("sort KEY", "Toggle sorting by a column"),
    ("more", "Load the next batch of rows"),
    ("period DATE", "Switch a fund page to another report period"),
    ("expand SYMBOL", "Toggle institution detail on the trending page"),
    ("select N", "Choose security N from the portfolio lookup"),
    ("shares X / price Y", "Fill in the add-position form"),
    ("add", "Add the position to your portfolio"),
    ("rm ID", "Remove a portfolio position by id prefix"),
    ("quit", "Leave the browser"),
]


def _browse_help() -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column(style="grey62")
    for cmd, desc in BROWSE_HELP:
        table.add_row(cmd, desc)
    return table


class Browser:
    """Route-driven interactive loop over the views."""

    def __init__(self, app: AppContext, console: Console) -> None:
        self.app = app
        self.console = console
        self.nav = NavSearch(app)
        self.history: list[str] = []
        self.path = HOME
        self.view: View | None = None

    def go(self, path: str, remember: bool = True) -> None:
        if self.view is not None:
            self.view.close()
            if remember:
                self.history.append(self.path)
        self.path, self.view = open_view(self.app, path)

    def back(self) -> None:
        if self.history:
            self.go(self.history.pop(), remember=False)

    def dispatch(self, line: str) -> bool:
        """Run one command. Returns False when the loop should stop."""
        try:
            parts = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]{e}[/red]")
            return True
        if not parts:
            return True
        cmd, args = parts[0].lower(), parts[1:]
        arg = " ".join(args)
        view = self.view

        if cmd in ("quit", "exit", "q"):
            return False
        if cmd == "help":
            self.console.print(_browse_help())
            return True
        if cmd == "go":
            self.go(arg or HOME)
        elif cmd == "back":
            self.back()
        elif cmd == "find":
            self.nav.box.set_text(arg)
            self.nav.box.wait_idle(SEARCH_TIMEOUT)
            self.console.print(self.nav.render())
            return True
        elif cmd == "open" and args and args[0].isdigit():
            options = self.nav.box.options
            i = int(args[0])
            if 1 <= i <= len(options):
                route = self.nav.select(options[i - 1])
                if route:
                    self.go(route)
        elif cmd == "type" and hasattr(view, "type"):
            view.type(arg)
            view.wait_idle(SEARCH_TIMEOUT)
        elif cmd == "type" and hasattr(view, "search"):
            view.search(arg)
            view.wait_idle(SEARCH_TIMEOUT)
        elif cmd == "pick" and hasattr(view, "pick") and args and args[0].isdigit():
            route = view.pick(int(args[0]))
            if route:
                self.go(route)
        elif cmd == "submit" and hasattr(view, "submit"):
            route = view.submit(arg or None)
            if route:
                self.go(route)
        elif cmd == "sort" and hasattr(view, "toggle_sort"):
            try:
                view.toggle_sort(arg)
            except ValueError as e:
                self.console.print(f"[red]{e}[/red]")
                return True
        elif cmd == "more" and hasattr(view, "load_more"):
            view.load_more()
        elif cmd == "period" and hasattr(view, "select_period"):
            if not view.select_period(arg):
                self.console.print(f"[red]No filing for period {arg}[/red]")
                return True
        elif cmd == "expand" and hasattr(view, "toggle_expand"):
            view.toggle_expand(arg)
        elif isinstance(view, PortfolioView) and cmd in ("select", "shares", "price", "add", "rm"):
            if not self._portfolio(view, cmd, args):
                return True
        else:
            self.console.print(f"[yellow]Unknown command here: {cmd}[/yellow] (try 'help')")
            return True

        self.render()
        return True

    def _portfolio(self, view: PortfolioView, cmd: str, args: list[str]) -> bool:
        if cmd == "select" and args and args[0].isdigit():
            return view.select(int(args[0])) is not None
        if cmd == "shares" and args:
            view.shares_input = args[0]
        elif cmd == "price" and args:
            view.price_input = args[0]
        elif cmd == "add":
            try:
                entry = view.add_position()
            except ValueError:
                self.console.print("[red]Shares and price must be numbers[/red]")
                return False
            if entry is None:
                self.console.print("[red]Select a security and fill in shares and price first[/red]")
                return False
        elif cmd == "rm" and args:
            match = [p.id for p in view.portfolio if p.id.startswith(args[0])]
            if len(match) != 1:
                self.console.print(f"[red]No unique position with id '{args[0]}'[/red]")
                return False
            view.remove_position(match[0])
        return True

    def render(self) -> None:
        self.console.rule(f"[bold]OPEN[/bold][grey50]HEDGE[/grey50]  {self.path}")
        self.console.print(self.view.render())

    def close(self) -> None:
        if self.view is not None:
            self.view.close()
        self.nav.close()


@cli.command("browse")
@click.argument("path", default=HOME)
@click.pass_context
def browse(ctx: click.Context, path: str) -> None:
    """Interactive browser over every page. Type 'help' for commands."""
    app = _app(ctx)
    browser = Browser(app, ctx.obj["console"])
    browser.go(path)
    browser.render()
    try:
        while True:
            try:
                line = click.prompt(">", default="", show_default=False, prompt_suffix=" ")
            except (EOFError, click.Abort):
                break
            if not browser.dispatch(line):
                break
    finally:
        browser.close()
        app.scheduler.join(SEARCH_TIMEOUT)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
