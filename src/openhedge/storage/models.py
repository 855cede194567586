"""Data models for records read from the remote store."""

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone

log = logging.getLogger(__name__)


def _to_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value) -> int:
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


def parse_date(value: str | None) -> date | None:
    """Parse an ISO date (or timestamp) string."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


@dataclass
class Fund:
    """One 13F filing of a reporting company."""

    id: int
    company_name: str
    report_date: str
    quarterly_return: float | None = None
    source_url: str | None = None
    holdings_count: int | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Fund":
        ret = row.get("quarterly_return")
        return cls(
            id=row["id"],
            company_name=row.get("company_name", ""),
            report_date=row.get("report_date", ""),
            quarterly_return=float(ret) if ret is not None else None,
            source_url=row.get("source_url"),
            holdings_count=row.get("holdings_count"),
        )


@dataclass
class Valuation:
    """A point on a fund's valuation (AUM) history."""

    fund_id: int | None
    valuation_date: str
    value_usd: float

    @classmethod
    def from_row(cls, row: dict) -> "Valuation":
        return cls(
            fund_id=row.get("fund_id"),
            valuation_date=row.get("valuation_date", ""),
            value_usd=_to_float(row.get("value_usd")),
        )


@dataclass
class Holding:
    """A position held by one fund."""

    id: int | None
    fund_id: int | None
    symbol: str
    issuer: str
    shares_count: int
    value_usd: float

    @classmethod
    def from_row(cls, row: dict) -> "Holding":
        return cls(
            id=row.get("id"),
            fund_id=row.get("fund_id"),
            symbol=row.get("symbol") or "",
            issuer=row.get("issuer") or "",
            shares_count=_to_int(row.get("shares_count")),
            value_usd=_to_float(row.get("value_usd")),
        )


@dataclass
class StockHolder:
    """A holding of one symbol joined to the fund that reported it."""

    fund_id: int
    fund_name: str
    shares_count: int
    value_usd: float
    report_date: str
    source_url: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "StockHolder":
        fund = row.get("funds") or {}
        return cls(
            fund_id=fund.get("id"),
            fund_name=fund.get("company_name", ""),
            shares_count=_to_int(row.get("shares_count")),
            value_usd=_to_float(row.get("value_usd")),
            report_date=fund.get("report_date", ""),
            source_url=fund.get("source_url"),
        )


@dataclass
class InstitutionFlow:
    """One institution's change in a trending symbol for the latest period."""

    institution: str
    shares: int
    value: float


@dataclass
class TrendingTicker:
    """A symbol with its embedded per-institution activity payload."""

    symbol: str
    total_value: float
    total_shares: int
    institutions: list[InstitutionFlow] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict) -> "TrendingTicker":
        raw = row.get("institutions") or row.get("investor_details")
        payload: dict = {}
        if isinstance(raw, str):
            try:
                payload = json.loads(raw)
            except ValueError as e:
                log.error("Error parsing institution payload for %s: %s", row.get("symbol"), e)
        elif isinstance(raw, dict):
            payload = raw
        if not isinstance(payload, dict):
            log.error(
                "Institution payload for %s is a %s, not an object",
                row.get("symbol"),
                type(payload).__name__,
            )
            payload = {}

        flows = [
            InstitutionFlow(
                institution=item.get("institution") or "Unknown Fund",
                shares=_to_int(item.get("shares")),
                value=_to_float(item.get("value")),
            )
            for item in payload.get("institutions") or []
            if isinstance(item, dict)
        ]
        return cls(
            symbol=row.get("symbol", ""),
            total_value=_to_float(payload.get("total_value")),
            total_shares=_to_int(payload.get("total_shares")),
            institutions=flows,
        )


@dataclass
class Security:
    """Security reference entry used for ticker lookup."""

    symbol: str
    description: str
    cusip: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Security":
        return cls(
            symbol=row.get("symbol", ""),
            description=row.get("description") or row.get("issuer") or "",
            cusip=row.get("cusip"),
        )

    @property
    def label(self) -> str:
        return f"{self.symbol} - {self.description}"


@dataclass
class PortfolioEntry:
    """A position in the user's watchlist, stored in the profile document."""

    id: str
    symbol: str
    name: str
    shares: float
    avg_price: float
    date_added: str
    cusip: str | None = None

    @classmethod
    def new(
        cls, symbol: str, name: str, shares: float, avg_price: float, cusip: str | None = None
    ) -> "PortfolioEntry":
        return cls(
            id=str(uuid.uuid4()),
            symbol=symbol,
            name=name,
            shares=shares,
            avg_price=avg_price,
            date_added=datetime.now(timezone.utc).isoformat(),
            cusip=cusip,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "PortfolioEntry":
        return cls(
            id=str(data.get("id", "")),
            symbol=data.get("symbol", ""),
            name=data.get("name") or "",
            shares=_to_float(data.get("shares")),
            avg_price=_to_float(data.get("avg_price")),
            date_added=data.get("date_added", ""),
            cusip=data.get("cusip"),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        if data["cusip"] is None:
            del data["cusip"]
        return data

    @property
    def cost_basis(self) -> float:
        return self.shares * self.avg_price


@dataclass
class SearchOption:
    """A global search result: a fund ("Institutions") or a ticker ("Stocks")."""

    type: str
    label: str
    value: str
    sub_label: str = ""
    match_label: str = ""
