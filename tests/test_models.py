"""Tests for record parsing, formatting and exports."""

import json

import pandas as pd
import pytest

from openhedge.storage.exports import (
    export_dataframe,
    fund_holdings_to_dataframe,
    stock_holders_to_dataframe,
)
from openhedge.storage.models import (
    Fund,
    Holding,
    PortfolioEntry,
    Security,
    StockHolder,
    TrendingTicker,
    parse_date,
)
from openhedge.ui.formatting import (
    SentimentRing,
    format_currency,
    format_large_currency,
    format_number,
    format_percent,
    format_signed_percent,
    fund_slug,
    sparkline,
    title_case,
)
from openhedge.views.fund_detail import decode_fund_slug


class TestModels:
    def test_holding_coerces_numbers(self):
        h = Holding.from_row({"id": 1, "fund_id": 2, "symbol": "AAPL", "shares_count": "100", "value_usd": None})
        assert h.shares_count == 100
        assert h.value_usd == 0.0
        assert h.issuer == ""

    def test_stock_holder_reads_embedded_fund(self):
        row = {
            "shares_count": 5,
            "value_usd": 10.5,
            "funds": {"id": 7, "company_name": "ALPHA", "report_date": "2025-09-30", "source_url": "u"},
        }
        h = StockHolder.from_row(row)
        assert (h.fund_id, h.fund_name, h.report_date, h.source_url) == (7, "ALPHA", "2025-09-30", "u")

    def test_trending_payload_as_json_string(self):
        payload = {
            "total_value": 1500.0,
            "total_shares": 30,
            "institutions": [{"institution": "A", "shares": 10, "value": 500}, {"shares": 20}],
        }
        t = TrendingTicker.from_row({"symbol": "NVDA", "investor_details": json.dumps(payload)})
        assert t.total_value == 1500.0
        assert [i.institution for i in t.institutions] == ["A", "Unknown Fund"]

    def test_trending_payload_as_object(self):
        t = TrendingTicker.from_row({"symbol": "NVDA", "institutions": {"total_value": 1}})
        assert t.total_value == 1.0
        assert t.institutions == []

    def test_trending_malformed_payload(self, caplog):
        t = TrendingTicker.from_row({"symbol": "BAD", "investor_details": "{not json"})
        assert t.total_value == 0
        assert "BAD" in caplog.text

    @pytest.mark.parametrize("raw", [json.dumps([{"institution": "A", "shares": 10}]), "42", "null"])
    def test_trending_payload_not_an_object(self, raw, caplog):
        t = TrendingTicker.from_row({"symbol": "LIST", "investor_details": raw})
        assert t.symbol == "LIST"
        assert t.total_value == 0
        assert t.institutions == []
        assert "LIST" in caplog.text

    def test_portfolio_entry_round_trip_without_cusip(self):
        entry = PortfolioEntry.new("AAPL", "Apple Inc", 10, 150.0)
        data = entry.to_dict()
        assert "cusip" not in data
        assert set(data) == {"id", "symbol", "name", "shares", "avg_price", "date_added"}
        assert PortfolioEntry.from_dict(data) == entry

    def test_portfolio_entry_ids_are_unique(self):
        assert PortfolioEntry.new("A", "", 1, 1).id != PortfolioEntry.new("A", "", 1, 1).id

    def test_security_label(self):
        s = Security.from_row({"symbol": "MSFT", "description": "MICROSOFT CORP"})
        assert s.label == "MSFT - MICROSOFT CORP"

    @pytest.mark.parametrize(
        "value, expected",
        [("2025-09-30", (2025, 9, 30)), ("2025-09-30T12:00:00Z", (2025, 9, 30)), ("", None), ("junk", None)],
    )
    def test_parse_date(self, value, expected):
        result = parse_date(value)
        assert (result.timetuple()[:3] if result else None) == expected


class TestFormatting:
    def test_currency(self):
        assert format_currency(1234.5) == "$1,234.50"
        assert format_currency(None) == "$0.00"
        assert format_currency(-5) == "-$5.00"

    def test_number(self):
        assert format_number(1234567) == "1,234,567"
        assert format_number(2.5) == "2.5"
        assert format_number(None) == "0"

    def test_percent(self):
        assert format_percent(3.2035) == "3.20%"
        assert format_percent(None) == "-"
        assert format_signed_percent(1.5) == "+1.50%"
        assert format_signed_percent(-1.5) == "-1.50%"

    def test_large_currency(self):
        assert format_large_currency(2.5e12) == "$2.50T"
        assert format_large_currency(3.21e9) == "$3.2B"
        assert format_large_currency(45e6) == "$45M"
        assert format_large_currency(999) == "$999"

    def test_title_case(self):
        assert title_case("ORACLE CORP") == "Oracle Corp"

    def test_fund_slug_round_trip(self):
        slug = fund_slug("BERKSHIRE HATHAWAY INC")
        assert slug == "BERKSHIRE-HATHAWAY-INC"
        assert decode_fund_slug(slug) == "BERKSHIRE HATHAWAY INC"
        assert decode_fund_slug("D.E.%20SHAW") == "D.E. SHAW"

    def test_sparkline(self):
        line = sparkline([1, 2, 3, 4])
        assert len(line) == 4
        assert line[0] == "▁" and line[-1] == "█"
        assert len(sparkline(list(range(200)), width=60)) == 60
        assert sparkline([]) == ""

    def test_sentiment_ring_frames(self):
        frames = list(SentimentRing(0.8).frames(4))
        assert len(frames) == 5
        assert frames[0].ratio == 0
        assert frames[-1].ratio == pytest.approx(0.8)
        assert str(frames[-1].__rich__()).endswith("80%")

    def test_sentiment_ring_without_data(self):
        ring = SentimentRing(None)
        assert str(ring.__rich__()) == "-"
        assert all(f.ratio is None for f in ring.frames(3))


class TestExports:
    def test_fund_holdings_dataframe(self):
        fund = Fund(1, "ALPHA", "2025-09-30")
        holdings = [Holding(1, 1, "AAPL", "APPLE INC", 10, 300.0), Holding(2, 1, "MSFT", "MICROSOFT", 5, 100.0)]
        df = fund_holdings_to_dataframe(fund, holdings, [75.0, 25.0], ["NEW", "-"])
        assert list(df["symbol"]) == ["AAPL", "MSFT"]
        assert list(df["weight_pct"]) == [75.0, 25.0]
        assert df["company_name"].unique().tolist() == ["ALPHA"]

    def test_stock_holders_dataframe(self):
        df = stock_holders_to_dataframe("AAPL", [StockHolder(1, "ALPHA", 10, 1.0, "2025-09-30")])
        assert df.loc[0, "fund_name"] == "ALPHA"

    def test_empty_frames(self):
        assert fund_holdings_to_dataframe(Fund(1, "A", "d"), [], [], []).empty
        assert stock_holders_to_dataframe("X", []).empty

    def test_export_csv(self, tmp_path):
        df = pd.DataFrame([{"symbol": "AAPL", "value_usd": 1.0}])
        path = export_dataframe(df, tmp_path / "out", "ALPHA FUND/2025", "csv")
        assert path.name == "ALPHA_FUND_2025.csv"
        assert pd.read_csv(path).loc[0, "symbol"] == "AAPL"

    def test_export_rejects_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            export_dataframe(pd.DataFrame(), tmp_path, "x", "xlsx")
