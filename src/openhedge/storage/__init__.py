"""Record models, profile storage and data export."""

from .exports import export_dataframe, fund_holdings_to_dataframe, stock_holders_to_dataframe
from .models import (
    Fund,
    Holding,
    InstitutionFlow,
    PortfolioEntry,
    SearchOption,
    Security,
    StockHolder,
    TrendingTicker,
    Valuation,
)
from .profiles import ProfileStore

__all__ = [
    "Fund",
    "Holding",
    "InstitutionFlow",
    "PortfolioEntry",
    "ProfileStore",
    "SearchOption",
    "Security",
    "StockHolder",
    "TrendingTicker",
    "Valuation",
    "export_dataframe",
    "fund_holdings_to_dataframe",
    "stock_holders_to_dataframe",
]
