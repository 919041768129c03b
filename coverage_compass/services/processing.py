"""
Period Processing Service

Turns an uploaded row set into stored history snapshots, one (market, year,
month) unit at a time:

- process_compliance_history(): read every unit's previous-month
  compliance snapshot, then per unit analyze compliance with MoM and upsert
  the new snapshot. All reads finish before the first write, so MoM only
  compares against earlier runs; two consecutive months in one upload never
  see each other
- process_dimension_coverage_history(): per unit, build the quality report
  and upsert one coverage snapshot per sliced dimension
- check_compliance_coverage(): which units still lack a compliance snapshot
- get_dimension_coverage_trends(): newest-first coverage history of a market

Units run concurrently with asyncio.gather and share no state. A history
failure is logged and recorded on the failing unit's UnitResult; it never
aborts the other units. Results are merged in unit-key order after all units
complete.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

from coverage_compass.models.enums import Dimension
from coverage_compass.models.schemas import (
    ComplianceSnapshot,
    CoverageCheck,
    DimensionCoverageSnapshot,
    PerformanceRow,
    ProcessingResult,
    UnitResult,
)
from coverage_compass.services.compliance import analyze_compliance
from coverage_compass.services.history import (
    DEFAULT_TREND_MONTHS,
    HistoryStore,
    HistoryUnavailableError,
)
from coverage_compass.services.quality import calculate_comprehensive_data_quality
from coverage_compass.services.selection import format_period, previous_period


logger = logging.getLogger(__name__)

UnitKey = Tuple[str, int, int]


def group_rows_by_unit(rows: Sequence[PerformanceRow]) -> Dict[UnitKey, List[PerformanceRow]]:
    """Group rows by (market, year, month), keys in sorted order."""
    grouped: Dict[UnitKey, List[PerformanceRow]] = {}
    for row in rows:
        grouped.setdefault((row.market, row.year, row.month), []).append(row)
    return {key: grouped[key] for key in sorted(grouped)}


def unit_label(key: UnitKey) -> str:
    market, year, month = key
    return f"{market}_{year}_{month}"


async def load_previous_compliance(
    store: HistoryStore,
    market: str,
    year: int,
    month: int,
) -> Optional[ComplianceSnapshot]:
    """
    Read the compliance snapshot of the month preceding (year, month).

    Raises:
        HistoryUnavailableError: If the store cannot be read.
    """
    prior_year, prior_month = previous_period(year, month)
    snapshots = await store.query({"market": market, "year": prior_year, "month": prior_month}, limit=1)
    return snapshots[0] if snapshots else None


async def _gather_units(coroutines, keys: List[UnitKey]) -> List[UnitResult]:
    outcomes = await asyncio.gather(*coroutines, return_exceptions=True)
    results: List[UnitResult] = []
    for key, outcome in zip(keys, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Unit {unit_label(key)} failed: {outcome}", exc_info=outcome)
            market, year, month = key
            results.append(UnitResult(market=market, year=year, month=month, success=False, errors=[str(outcome)]))
        else:
            results.append(outcome)
    return results


def _summarize(kind: str, results: List[UnitResult]) -> ProcessingResult:
    succeeded = sum(1 for result in results if result.success)
    written = sum(result.snapshotsWritten for result in results)
    message = f"Processed {succeeded}/{len(results)} {kind} units, {written} snapshots written"
    logger.info(message)
    return ProcessingResult(success=succeeded == len(results), message=message, results=results)


# =============================================================================
# Compliance History
# =============================================================================

async def _prefetch_previous(
    store: HistoryStore,
    key: UnitKey,
) -> Tuple[Optional[ComplianceSnapshot], Optional[str]]:
    market, year, month = key
    try:
        return await load_previous_compliance(store, market, year, month), None
    except HistoryUnavailableError as e:
        logger.warning(f"Previous compliance unavailable for {unit_label(key)}, MoM disabled: {e}")
        return None, f"previous snapshot unavailable: {e}"


async def process_compliance_unit(
    key: UnitKey,
    rows: Sequence[PerformanceRow],
    store: HistoryStore,
    previous: Optional[ComplianceSnapshot] = None,
    read_error: Optional[str] = None,
) -> UnitResult:
    """
    Analyze one unit's compliance and store its snapshot.

    The previous-month snapshot is passed in rather than read here; a
    read_error is recorded on the result and leaves MoM unavailable.
    """
    market, year, month = key
    result = UnitResult(market=market, year=year, month=month, records=len(rows))

    history: List[ComplianceSnapshot] = [previous] if previous is not None else []
    if read_error:
        result.errors.append(read_error)

    report = analyze_compliance(rows, history, period=format_period(year, month))
    record = next((item for item in report.marketCompliance if item.market == market), None)
    if record is None:
        result.success = False
        result.errors.append(report.error or "no data")
        return result

    result.momAvailable = record.momChange is not None

    snapshot = ComplianceSnapshot.from_record(record, year, month)
    try:
        await store.upsert(snapshot.key, snapshot)
        result.snapshotsWritten = 1
    except HistoryUnavailableError as e:
        logger.warning(f"Could not store compliance snapshot for {unit_label(key)}: {e}")
        result.success = False
        result.errors.append(f"snapshot not stored: {e}")

    return result


async def process_compliance_history(rows: Sequence[PerformanceRow], store: HistoryStore) -> ProcessingResult:
    """
    Analyze and store compliance for every (market, year, month) in the rows.

    Previous-month snapshots are all read before any unit writes, so MoM
    compares against runs stored before this call. An upload holding June and
    July stores July without MoM; processing July again afterwards picks up
    the stored June.

    Args:
        rows: Uploaded rows, any markets and periods.
        store: Compliance history store.

    Returns:
        ProcessingResult with one UnitResult per unit in key order.
    """
    units = group_rows_by_unit(rows)
    if not units:
        return ProcessingResult(success=False, message="No rows to process")

    keys = list(units)
    prefetched = await asyncio.gather(
        *(_prefetch_previous(store, key) for key in keys),
        return_exceptions=True,
    )

    coroutines = []
    for key, outcome in zip(keys, prefetched):
        if isinstance(outcome, BaseException):
            logger.error(f"Previous compliance read failed for {unit_label(key)}: {outcome}", exc_info=outcome)
            outcome = (None, f"previous snapshot unavailable: {outcome}")
        previous, read_error = outcome
        coroutines.append(process_compliance_unit(key, units[key], store, previous, read_error))

    results = await _gather_units(coroutines, keys)
    return _summarize("compliance", results)


# =============================================================================
# Dimension Coverage History
# =============================================================================

async def process_dimension_coverage_unit(
    key: UnitKey,
    rows: Sequence[PerformanceRow],
    store: HistoryStore,
) -> UnitResult:
    """Score one unit and store a coverage snapshot per measured dimension."""
    market, year, month = key
    result = UnitResult(market=market, year=year, month=month, records=len(rows))

    report = calculate_comprehensive_data_quality(rows, market=market, period=format_period(year, month))
    if report.error:
        result.success = False
        result.errors.append(report.error)
        return result

    snapshots: List[DimensionCoverageSnapshot] = []
    for name, dimension_report in report.dimensionBreakdown.items():
        discrepancy = dimension_report.marketDiscrepancies.get(market)
        if discrepancy is None or discrepancy.error:
            continue
        snapshots.append(DimensionCoverageSnapshot.from_discrepancy(discrepancy, Dimension(name), year, month))

    outcomes = await asyncio.gather(
        *(store.upsert(snapshot.key, snapshot) for snapshot in snapshots),
        return_exceptions=True,
    )
    for snapshot, outcome in zip(snapshots, outcomes):
        if isinstance(outcome, HistoryUnavailableError):
            logger.warning(
                f"Could not store {snapshot.dimension.value} coverage for {unit_label(key)}: {outcome}"
            )
            result.errors.append(f"{snapshot.dimension.value} snapshot not stored: {outcome}")
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.snapshotsWritten += 1

    result.success = not result.errors
    return result


async def process_dimension_coverage_history(
    rows: Sequence[PerformanceRow],
    store: HistoryStore,
) -> ProcessingResult:
    """Store dimension coverage snapshots for every unit in the rows."""
    units = group_rows_by_unit(rows)
    if not units:
        return ProcessingResult(success=False, message="No rows to process")

    keys = list(units)
    results = await _gather_units(
        [process_dimension_coverage_unit(key, units[key], store) for key in keys],
        keys,
    )
    return _summarize("dimension coverage", results)


# =============================================================================
# Coverage Check and Trends
# =============================================================================

async def check_compliance_coverage(rows: Sequence[PerformanceRow], store: HistoryStore) -> CoverageCheck:
    """
    Report which (market, year, month) units lack a compliance snapshot.

    Missing units are labelled MARKET_YEAR_MONTH, in key order.

    Raises:
        HistoryUnavailableError: If the store cannot be read.
    """
    keys = list(group_rows_by_unit(rows))
    if not keys:
        return CoverageCheck()

    lookups = await asyncio.gather(*(
        store.query({"market": market, "year": year, "month": month}, limit=1)
        for market, year, month in keys
    ))
    missing = [unit_label(key) for key, found in zip(keys, lookups) if not found]

    return CoverageCheck(
        hasData=True,
        totalPeriods=len(keys),
        coveredPeriods=len(keys) - len(missing),
        missingPeriods=missing,
        needsProcessing=bool(missing),
    )


async def get_dimension_coverage_trends(
    store: HistoryStore,
    market: str,
    dimension: Optional[Union[Dimension, str]] = None,
    months: int = DEFAULT_TREND_MONTHS,
) -> List[DimensionCoverageSnapshot]:
    """Newest-first coverage snapshots of one market, optionally one dimension."""
    return await store.trend(market, dimension, lookback_months=months)
