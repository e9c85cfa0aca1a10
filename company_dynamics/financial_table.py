"""Formatted projection of annual snapshots.

The table is read-only: it is rebuilt from a company's annual snapshot window
whenever it is requested and never feeds back into the simulation.
"""

import math
from typing import Iterable, Optional

import pandas as pd

from .bookkeeping import AnnualSnapshot

EMPTY_TABLE_MESSAGE = "No annual data available yet"

_MONEY_UNITS = ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K"))


def format_money(value: float) -> str:
    """Format a dollar amount with K/M/B/T abbreviations.

    Examples:
        >>> format_money(12_345_678)
        '$12.3M'
        >>> format_money(-2_500)
        '-$2.5K'
        >>> format_money(999)
        '$999'
    """
    magnitude = abs(value)
    for threshold, suffix in _MONEY_UNITS:
        if magnitude >= threshold:
            formatted = f"${magnitude / threshold:.1f}{suffix}"
            break
    else:
        formatted = f"${magnitude:.0f}"
    return f"-{formatted}" if value < 0 else formatted


def format_ratio(value: float) -> str:
    if value == 0 or not math.isfinite(value):
        return "N/A"
    return f"{value:.1f}x"


def format_yield(dividend: float, market_cap: Optional[float]) -> str:
    if not market_cap or market_cap <= 0:
        return "N/A"
    return f"{100 * dividend / market_cap:.2f}%"


def build_financial_table(
    snapshots: Iterable[AnnualSnapshot], include_dividend_yield: bool = False
) -> pd.DataFrame:
    """Build the display table from annual snapshots.

    Args:
        snapshots: Annual snapshots in chronological order.
        include_dividend_yield: Add a ``Dividend Yield`` column.

    Returns:
        pd.DataFrame: One row per year, most recent first, all cells formatted
        as strings. Empty (with columns) when there are no snapshots.
    """
    columns = ["Year", "Revenue", "Profit", "Cash", "Debt"]
    if include_dividend_yield:
        columns.append("Dividend Yield")
    columns += ["P/S", "P/E"]

    rows = []
    for snap in reversed(list(snapshots)):
        row = {
            "Year": str(snap.year),
            "Revenue": format_money(snap.revenue),
            "Profit": format_money(snap.profit),
            "Cash": format_money(snap.cash or 0.0),
            "Debt": format_money(snap.debt or 0.0),
            "P/S": format_ratio(snap.price_to_sales),
            "P/E": format_ratio(snap.price_to_earnings),
        }
        if include_dividend_yield:
            row["Dividend Yield"] = format_yield(snap.dividend or 0.0, snap.market_cap)
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)


def render_financial_table(
    snapshots: Iterable[AnnualSnapshot], include_dividend_yield: bool = False
) -> str:
    """Plain-text rendering of :func:`build_financial_table`."""
    df = build_financial_table(snapshots, include_dividend_yield)
    if df.empty:
        return EMPTY_TABLE_MESSAGE
    return df.to_string(index=False)
