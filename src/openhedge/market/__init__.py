"""Third-party market data (prices and fundamentals)."""

from .alphavantage import (
    MarketDataClient,
    PricePoint,
    PriceSeries,
    is_soft_error,
    synthetic_weekly_series,
)

__all__ = [
    "MarketDataClient",
    "PricePoint",
    "PriceSeries",
    "is_soft_error",
    "synthetic_weekly_series",
]
