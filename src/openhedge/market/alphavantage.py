"""Market-data HTTP client (weekly prices and company overview).

The API reports rate limits, unknown symbols and missing data with a 200
response whose payload carries one of a few well-known keys, so failures are
recognised by payload shape rather than HTTP status. Price history falls back
to a synthetic random walk so the chart never renders empty; the series is
flagged ``synthetic`` so views can label it.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import date, timedelta

import httpx

from ..config import Config

log = logging.getLogger(__name__)

SOFT_ERROR_KEYS = ("Note", "Information", "Error Message")
WEEKLY_SERIES_KEY = "Weekly Time Series"
FALLBACK_POINTS = 52


@dataclass
class PricePoint:
    date: str
    value: float


@dataclass
class PriceSeries:
    """Weekly closing prices in ascending date order."""

    symbol: str
    points: list[PricePoint] = field(default_factory=list)
    synthetic: bool = False

    @property
    def current_price(self) -> float | None:
        return self.points[-1].value if self.points else None

    @property
    def change_pct(self) -> float:
        """Percent change from the first to the last point of the window."""
        if len(self.points) < 2 or not self.points[0].value:
            return 0.0
        first = self.points[0].value
        return (self.points[-1].value - first) / first * 100

    @property
    def values(self) -> list[float]:
        return [p.value for p in self.points]


def is_soft_error(payload: dict | None) -> bool:
    """True for rate-limit / invalid-symbol / no-data shaped payloads."""
    if not isinstance(payload, dict) or not payload:
        return True
    return any(key in payload for key in SOFT_ERROR_KEYS)


def synthetic_weekly_series(
    symbol: str,
    points: int = FALLBACK_POINTS,
    end: date | None = None,
    rng: random.Random | None = None,
) -> PriceSeries:
    """Generate a weekly random-walk price series ending at ``end``."""
    rng = rng or random.Random()
    end = end or date.today()
    price = rng.uniform(50, 250)

    series: list[PricePoint] = []
    for i in range(points):
        week = end - timedelta(weeks=points - 1 - i)
        series.append(PricePoint(date=week.isoformat(), value=round(price, 2)))
        # Weekly moves of a few percent, floored so the walk stays positive
        price = max(1.0, price * (1 + rng.gauss(0.002, 0.03)))

    return PriceSeries(symbol=symbol.upper(), points=series, synthetic=True)


class MarketDataClient:
    """HTTP client for the third-party market-data API."""

    BASE_URL = "https://www.alphavantage.co/query"

    def __init__(
        self,
        config: Config,
        transport: httpx.BaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.api_key = config.alpha_vantage_key
        self._rng = rng
        self._client = httpx.Client(timeout=config.http_timeout, transport=transport)

    def _query(self, function: str, symbol: str) -> dict | None:
        if not self.api_key:
            log.warning("ALPHA_VANTAGE_API_KEY not set; treating %s as unavailable", function)
            return None
        try:
            response = self._client.get(
                self.BASE_URL,
                params={"function": function, "symbol": symbol, "apikey": self.api_key},
            )
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            log.error("Market data request %s for %s failed: %s", function, symbol, e)
            return None

    def weekly_prices(self, symbol: str, today: date | None = None) -> PriceSeries:
        """
        Fetch the last year of weekly closes for ``symbol``.

        Falls back to a synthetic 52-point series on any soft error.
        """
        symbol = symbol.upper()
        today = today or date.today()
        payload = self._query("TIME_SERIES_WEEKLY", symbol)

        series = None if is_soft_error(payload) else payload.get(WEEKLY_SERIES_KEY)
        if not series:
            log.warning("No weekly prices for %s; using synthetic series", symbol)
            return synthetic_weekly_series(symbol, end=today, rng=self._rng)

        one_year_ago = today - timedelta(days=365)

        points = []
        for day in sorted(series):
            try:
                if date.fromisoformat(day) < one_year_ago:
                    continue
                points.append(PricePoint(date=day, value=float(series[day]["4. close"])))
            except (KeyError, TypeError, ValueError):
                log.debug("Skipping malformed weekly bar %s for %s", day, symbol)
        return PriceSeries(symbol=symbol, points=points)

    def company_overview(self, symbol: str) -> dict:
        """Fetch company fundamentals, or an empty dict on any soft error."""
        payload = self._query("OVERVIEW", symbol.upper())
        if is_soft_error(payload) or "Symbol" not in payload:
            return {}
        return payload

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MarketDataClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
