"""Export table views to CSV and Parquet formats."""

import re
from pathlib import Path

import pandas as pd

from .models import Fund, Holding, StockHolder


def _slug(text: str) -> str:
    return re.sub(r"[^\w\-]+", "_", text).strip("_") or "export"


def fund_holdings_to_dataframe(
    fund: Fund,
    holdings: list[Holding],
    weights: list[float],
    changes: list[str],
) -> pd.DataFrame:
    """Convert a fund's holdings table (with derived columns) to a DataFrame."""
    if not holdings:
        return pd.DataFrame()

    return pd.DataFrame(
        [
            {
                "company_name": fund.company_name,
                "report_date": fund.report_date,
                "symbol": h.symbol,
                "issuer": h.issuer,
                "shares_count": h.shares_count,
                "change": change,
                "value_usd": h.value_usd,
                "weight_pct": round(weight, 4),
            }
            for h, weight, change in zip(holdings, weights, changes)
        ]
    )


def stock_holders_to_dataframe(symbol: str, holders: list[StockHolder]) -> pd.DataFrame:
    """Convert a stock's institutional holders to a DataFrame."""
    if not holders:
        return pd.DataFrame()

    return pd.DataFrame(
        [
            {
                "symbol": symbol,
                "fund_name": h.fund_name,
                "report_date": h.report_date,
                "shares_count": h.shares_count,
                "value_usd": h.value_usd,
                "source_url": h.source_url,
            }
            for h in holders
        ]
    )


def export_dataframe(df: pd.DataFrame, output_dir: Path, name: str, fmt: str = "csv") -> Path:
    """
    Write a DataFrame to ``output_dir``.

    Args:
        df: Table to export
        output_dir: Directory to write into (created if missing)
        name: Base file name, sanitized
        fmt: "csv" or "parquet"

    Returns:
        Path to the created file
    """
    if fmt not in ("csv", "parquet"):
        raise ValueError(f"Unsupported export format: {fmt}")

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{_slug(name)}.{fmt}"
    if fmt == "csv":
        df.to_csv(path, index=False)
    else:
        df.to_parquet(path, index=False)
    return path
