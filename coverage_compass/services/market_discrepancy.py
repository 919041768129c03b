"""
Per-market discrepancy analysis for one dimension.

Repeats the dimension-level reconciliation separately for each market so a
shortfall concentrated in one country is not hidden by the others.
"""

import logging
from typing import Dict, Iterable, List, Sequence

from coverage_compass.models.enums import Dimension
from coverage_compass.models.schemas import MarketDiscrepancy, PerformanceRow
from coverage_compass.services.aggregation import aggregate_totals
from coverage_compass.services.gaps import round2
from coverage_compass.services.scoring import (
    calculate_metric_gaps,
    calculate_weighted_score,
    get_quality_grade,
)


logger = logging.getLogger(__name__)

NO_ALL_DATA: str = "no all-data"


def _group_by_market(rows: Iterable[PerformanceRow]) -> Dict[str, List[PerformanceRow]]:
    grouped: Dict[str, List[PerformanceRow]] = {}
    for row in rows:
        grouped.setdefault(row.market, []).append(row)
    return grouped


def calculate_market_discrepancy(
    market: str,
    market_all_rows: Sequence[PerformanceRow],
    market_dimension_rows: Sequence[PerformanceRow],
) -> MarketDiscrepancy:
    """
    Reconcile one market's dimension rows against its All rows.

    `coverage` is 100 minus the unweighted mean of the five metric gaps;
    `score` is the weighted composite used for dimensions. Without All rows
    nothing can be measured and the result carries an error marker instead.
    """
    if not market_all_rows:
        return MarketDiscrepancy(
            market=market,
            totalRecords=len(market_dimension_rows),
            allRecords=0,
            error=NO_ALL_DATA,
        )

    gaps = calculate_metric_gaps(aggregate_totals(market_all_rows), aggregate_totals(market_dimension_rows))
    gap_list = gaps.as_list()
    mean_gap = sum(gap.coverageGapPct for gap in gap_list) / len(gap_list)
    score = round2(calculate_weighted_score(gap_list))

    return MarketDiscrepancy(
        market=market,
        coverage=round2(100.0 - mean_gap),
        score=score,
        grade=get_quality_grade(score),
        gaps=gaps,
        totalRecords=len(market_dimension_rows),
        allRecords=len(market_all_rows),
    )


def calculate_market_discrepancies(
    all_rows: Iterable[PerformanceRow],
    dimension_rows: Iterable[PerformanceRow],
    dimension: Dimension,
    markets: Sequence[str],
) -> Dict[str, MarketDiscrepancy]:
    """
    Compute a MarketDiscrepancy for every requested market.

    Args:
        all_rows: All rows of the selection (any market).
        dimension_rows: The dimension's rows of the selection.
        dimension: Dimension being analyzed (for logging).
        markets: Market codes to report, in output order.

    Returns:
        Dict of market code to MarketDiscrepancy, ordered like `markets`.
    """
    all_by_market = _group_by_market(all_rows)
    dimension_by_market = _group_by_market(dimension_rows)

    discrepancies = {
        market: calculate_market_discrepancy(
            market,
            all_by_market.get(market, []),
            dimension_by_market.get(market, []),
        )
        for market in markets
    }

    missing = [market for market, result in discrepancies.items() if result.error]
    if missing:
        logger.debug(f"{dimension.value}: no All rows for markets {', '.join(missing)}")

    return discrepancies
