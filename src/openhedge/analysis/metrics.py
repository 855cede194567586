"""Derived per-row metrics for holdings, rankings, trending and the watchlist."""

from dataclasses import dataclass, field
from datetime import date

from ..storage.models import (
    Fund,
    Holding,
    PortfolioEntry,
    StockHolder,
    TrendingTicker,
    Valuation,
    parse_date,
)


# =============================================================================
# Fund holdings
# =============================================================================


def portfolio_weights(holdings: list[Holding]) -> list[float]:
    """
    Weight of each row as a percent of the rows passed in.

    The denominator is the sum over the rows given, i.e. the rows currently
    loaded; with a partially paginated table the weights overstate every
    position until the full set is loaded.
    """
    total = sum(h.value_usd for h in holdings)
    if total <= 0:
        return [0.0 for _ in holdings]
    return [h.value_usd / total * 100 for h in holdings]


def previous_fund(history: list[Fund], fund_id: int) -> Fund | None:
    """The same company's filing with the next-older report date."""
    ordered = sorted(history, key=lambda f: f.report_date, reverse=True)
    for i, fund in enumerate(ordered):
        if fund.id == fund_id:
            return ordered[i + 1] if i + 1 < len(ordered) else None
    return None


@dataclass
class ShareChange:
    """Period-over-period share change of one holding."""

    change_type: str  # "NONE", "NEW", "UNCHANGED", "INCREASE", "DECREASE"
    delta: int = 0
    pct: float = 0.0  # percent of prior shares

    @property
    def sort_value(self) -> float | None:
        if self.change_type == "NONE":
            return None
        if self.change_type == "NEW":
            return float("inf")
        return float(self.delta)

    def label(self) -> str:
        if self.change_type == "NONE":
            return "-"
        if self.change_type == "NEW":
            return "NEW"
        if self.change_type == "UNCHANGED":
            return "0 (0.00%)"
        sign = "+" if self.delta > 0 else ""
        return f"{sign}{self.delta:,} ({sign}{self.pct:.2f}%)"


def share_change(
    current_shares: int, previous_shares: int | None, has_previous_period: bool
) -> ShareChange:
    """
    Compare a holding against the previous period's shares for the same symbol.

    Args:
        current_shares: Shares in the selected period
        previous_shares: Shares in the previous period, None if the symbol was absent
        has_previous_period: Whether the company has an older filing at all
    """
    if not has_previous_period:
        return ShareChange("NONE")
    if previous_shares is None:
        return ShareChange("NEW")

    delta = current_shares - previous_shares
    pct = (delta / previous_shares * 100) if previous_shares != 0 else 0.0
    if delta > 0:
        return ShareChange("INCREASE", delta, pct)
    if delta < 0:
        return ShareChange("DECREASE", delta, pct)
    return ShareChange("UNCHANGED")


# =============================================================================
# Fund rankings
# =============================================================================


@dataclass
class FundRanking:
    """One company row of the rankings table."""

    name: str
    latest_aum: float = 0.0
    quarters: dict[str, float | None] = field(default_factory=dict)


def build_fund_rankings(
    funds: list[Fund], valuations: list[Valuation], quarters: int = 4
) -> tuple[list[FundRanking], list[str]]:
    """
    Group filings per company with their latest AUM and recent returns.

    Args:
        funds: Filings, any order
        valuations: Valuation points, newest first
        quarters: Number of most recent report dates to show

    Returns:
        (rows in first-seen order, report-date headers newest first)
    """
    if not funds:
        return [], []

    fund_to_company = {f.id: f.company_name for f in funds}

    # Valuations arrive newest first, so the first hit per company wins
    company_aum: dict[str, float] = {}
    for v in valuations:
        company = fund_to_company.get(v.fund_id)
        if company is not None and company not in company_aum:
            company_aum[company] = v.value_usd

    headers = sorted({f.report_date for f in funds}, reverse=True)[:quarters]

    grouped: dict[str, FundRanking] = {}
    for f in funds:
        row = grouped.setdefault(f.company_name, FundRanking(name=f.company_name))
        row.quarters[f.report_date] = f.quarterly_return
        aum = company_aum.get(f.company_name, 0)
        if aum > 0:
            row.latest_aum = aum

    return list(grouped.values()), headers


# =============================================================================
# Stock holders
# =============================================================================


def latest_holder_per_fund(holders: list[StockHolder]) -> list[StockHolder]:
    """Keep each fund's most recent report of the symbol."""
    latest: dict[str, StockHolder] = {}
    for h in holders:
        current = latest.get(h.fund_name)
        if current is None or (parse_date(h.report_date) or date.min) > (
            parse_date(current.report_date) or date.min
        ):
            latest[h.fund_name] = h
    return list(latest.values())


# =============================================================================
# Trending and sentiment
# =============================================================================


@dataclass
class TrendingStats:
    active_count: int
    net_value: float
    net_shares: int


def trending_stats(ticker: TrendingTicker) -> TrendingStats:
    """Active institution count (non-zero share change) and net flows."""
    return TrendingStats(
        active_count=sum(1 for i in ticker.institutions if i.shares != 0),
        net_value=ticker.total_value,
        net_shares=ticker.total_shares,
    )


def active_institutions(ticker: TrendingTicker):
    """Institutions with a non-zero change, largest buyers first."""
    active = [i for i in ticker.institutions if i.shares != 0]
    return sorted(active, key=lambda i: i.shares, reverse=True)


def flow_extremes(
    tickers: list[TrendingTicker],
) -> tuple[TrendingTicker | None, TrendingTicker | None]:
    """
    The largest net inflow and outflow among loaded rows.

    Returns:
        (max inflow if positive, max outflow if negative)
    """
    if not tickers:
        return None, None
    ordered = sorted(tickers, key=lambda t: t.total_value, reverse=True)
    inflow = ordered[0] if ordered[0].total_value > 0 else None
    outflow = ordered[-1] if ordered[-1].total_value < 0 else None
    return inflow, outflow


@dataclass
class Sentiment:
    """Institutions increasing vs. decreasing a position."""

    buyers: int
    sellers: int

    @property
    def ratio(self) -> float | None:
        total = self.buyers + self.sellers
        if total == 0:
            return None
        return self.buyers / total


def sentiment(ticker: TrendingTicker) -> Sentiment:
    return Sentiment(
        buyers=sum(1 for i in ticker.institutions if i.shares > 0),
        sellers=sum(1 for i in ticker.institutions if i.shares < 0),
    )


def portfolio_total(entries: list[PortfolioEntry]) -> float:
    """Sum of shares x average cost."""
    return sum(e.cost_basis for e in entries)
