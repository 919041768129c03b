"""
Market and period selection helpers.

Callers select data with either a literal market code or the sentinel 'all',
and either a literal 'YYYY-MM' period or the sentinel 'all-periods'. These
helpers parse the selectors and filter row collections accordingly.
"""

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from coverage_compass.models.enums import Dimension
from coverage_compass.models.schemas import PerformanceRow


ALL_MARKETS: str = "all"
ALL_PERIODS: str = "all-periods"

_PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})$")

Period = Tuple[int, int]


def parse_period(period: Optional[str]) -> Optional[Period]:
    """
    Parse a 'YYYY-MM' period selector.

    Args:
        period: Period string, 'all-periods' or None.

    Returns:
        (year, month) tuple, or None for 'all-periods' / None.

    Raises:
        ValueError: If the selector is neither 'all-periods' nor a valid YYYY-MM.
    """
    if period is None or period == ALL_PERIODS:
        return None

    match = _PERIOD_PATTERN.match(period.strip())
    if not match:
        raise ValueError(f"Invalid period '{period}', expected YYYY-MM or '{ALL_PERIODS}'")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in period '{period}'")

    return year, month


def format_period(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def previous_period(year: int, month: int) -> Period:
    """Return the calendar month preceding (year, month)."""
    if month == 1:
        return year - 1, 12
    return year, month - 1


def latest_period(rows: Iterable[PerformanceRow]) -> Optional[Period]:
    """Return the most recent (year, month) present in the rows, if any."""
    periods = {(row.year, row.month) for row in rows}
    if not periods:
        return None
    return max(periods)


def select_markets(rows: Iterable[PerformanceRow], market: str) -> List[str]:
    """
    Resolve a market selector to a sorted list of market codes.

    'all' expands to every market present in the rows.
    """
    if market.strip().lower() == ALL_MARKETS:
        return sorted({row.market for row in rows})
    return [market.strip().upper()]


def filter_rows(
    rows: Iterable[PerformanceRow],
    dimension: Optional[Dimension] = None,
    markets: Optional[Sequence[str]] = None,
    period: Optional[Period] = None,
) -> List[PerformanceRow]:
    """
    Filter rows by dimension, market set and period.

    Any criterion left as None is not applied.
    """
    market_set = set(markets) if markets is not None else None
    selected = []
    for row in rows:
        if dimension is not None and row.dimension != dimension:
            continue
        if market_set is not None and row.market not in market_set:
            continue
        if period is not None and (row.year, row.month) != period:
            continue
        selected.append(row)
    return selected
