"""Route table: maps URL-style paths to views."""

import re
from dataclasses import dataclass

from .app import AppContext
from .views import (
    FundDetailView,
    FundRankingsView,
    LandingView,
    LoginView,
    PortfolioView,
    SearchPageView,
    StockDetailView,
    StockSearchView,
    TrendingView,
    View,
)

HOME = "/"

ROUTES: list[tuple[re.Pattern, type[View]]] = [
    (re.compile(r"^/$"), LandingView),
    (re.compile(r"^/search/?$"), SearchPageView),
    (re.compile(r"^/funds/?$"), FundRankingsView),
    (re.compile(r"^/fund/(?P<slug>[^/]+)/?$"), FundDetailView),
    (re.compile(r"^/stocks/?$"), StockSearchView),
    (re.compile(r"^/stocks/(?P<ticker>[^/]+)/?$"), StockDetailView),
    (re.compile(r"^/trending/?$"), TrendingView),
    (re.compile(r"^/portfolio/?$"), PortfolioView),
    (re.compile(r"^/login/?$"), LoginView),
]


@dataclass
class Match:
    path: str
    view: type[View]
    params: dict[str, str]


def resolve(path: str) -> Match:
    """Find the view for ``path``. Unknown paths resolve to the landing page."""
    path = "/" + path.strip().lstrip("/") if path else HOME
    path = path.split("?", 1)[0]
    for pattern, view in ROUTES:
        m = pattern.match(path)
        if m:
            return Match(path, view, m.groupdict())
    return Match(HOME, LandingView, {})


def open_view(app: AppContext, path: str, max_redirects: int = 5) -> tuple[str, View]:
    """
    Construct the view for ``path``, following view redirects.

    Returns:
        (final path, view)
    """
    for _ in range(max_redirects):
        match = resolve(path)
        view = match.view(app, **match.params)
        if view.redirect is None or resolve(view.redirect).path == match.path:
            return match.path, view
        path = view.redirect
        view.close()
    match = resolve(HOME)
    return match.path, match.view(app)
