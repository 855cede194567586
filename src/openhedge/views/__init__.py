"""Page-level views, one per route."""

from .base import View
from .fund_detail import FundDetailView, decode_fund_slug
from .funds import FundRankingsView
from .landing import LandingView, SearchPageView
from .login import LoginView
from .navbar import NavSearch, route_for_option, search_funds_and_stocks
from .portfolio import PortfolioView
from .stocks import StockDetailView, StockSearchView
from .trending import TrendingView

__all__ = [
    "View",
    "LandingView",
    "SearchPageView",
    "FundRankingsView",
    "FundDetailView",
    "decode_fund_slug",
    "StockSearchView",
    "StockDetailView",
    "TrendingView",
    "PortfolioView",
    "LoginView",
    "NavSearch",
    "route_for_option",
    "search_funds_and_stocks",
]
