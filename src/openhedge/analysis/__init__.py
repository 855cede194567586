"""Derived metrics: weights, share changes, rankings, flows, sentiment."""

from .metrics import (
    FundRanking,
    Sentiment,
    ShareChange,
    build_fund_rankings,
    flow_extremes,
    latest_holder_per_fund,
    portfolio_weights,
    previous_fund,
    sentiment,
    share_change,
    trending_stats,
)

__all__ = [
    "FundRanking",
    "Sentiment",
    "ShareChange",
    "build_fund_rankings",
    "flow_extremes",
    "latest_holder_per_fund",
    "portfolio_weights",
    "previous_fund",
    "sentiment",
    "share_change",
    "trending_stats",
]
