"""
Mapping Compliance Analyzer Service

Measures, per market, the share of sliced rows whose categorical value was
actually mapped by the upstream taxonomy, and compares it month over month
with the previously stored compliance snapshot.

Mapping rule: a categorical value is unmapped when it is missing, empty,
whitespace-only or contains 'not mapped' (case-insensitive). Only sliced
(non-All) rows are classified, and each row is checked on the field that
belongs to its dimension (a Model row on `model`, a Phase row on `phase`...).

Status buckets:
- Green: >= 95%
- Yellow: >= 90%
- Orange: >= 80%
- Red: below 80%

Month-over-month change is only reported when a snapshot exists for the same
market and the immediately preceding month; otherwise `momChange` is null and
must be rendered as "N/A" rather than 0%.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from coverage_compass.models.enums import (
    DIMENSION_MAPPED_FIELD,
    ComplianceStatusLevel,
    Dimension,
    MomDirection,
)
from coverage_compass.models.schemas import (
    ComplianceReport,
    ComplianceSnapshot,
    ComplianceStatus,
    ComplianceSummary,
    MarketComplianceRecord,
    MomChange,
    PerformanceRow,
    UnmappedByField,
)
from coverage_compass.services.gaps import round2
from coverage_compass.services.selection import (
    Period,
    filter_rows,
    format_period,
    latest_period,
    parse_period,
    previous_period,
)


logger = logging.getLogger(__name__)

PriorCompliance = Union[ComplianceSnapshot, MarketComplianceRecord]


# =============================================================================
# Constants
# =============================================================================

NOT_MAPPED_MARKER: str = "not mapped"
NO_DATA: str = "no data"

# Deltas within +/- this many points are reported as flat
MOM_FLAT_TOLERANCE: float = 0.01

# (floor, level, color, label)
_STATUS_BANDS = (
    (95.0, ComplianceStatusLevel.GREEN, "green", "Excellent"),
    (90.0, ComplianceStatusLevel.YELLOW, "yellow", "Good"),
    (80.0, ComplianceStatusLevel.ORANGE, "orange", "Needs Attention"),
)


# =============================================================================
# Classification Helpers
# =============================================================================

def is_not_mapped(value: Any) -> bool:
    """
    True when a categorical value was not mapped upstream.

    Example:
        >>> is_not_mapped("Not Mapped - Social")
        True
        >>> is_not_mapped("  ")
        True
        >>> is_not_mapped("X5")
        False
    """
    if value is None:
        return True
    text = str(value).strip()
    return not text or NOT_MAPPED_MARKER in text.lower()


def get_compliance_status(compliance_pct: float) -> ComplianceStatus:
    for floor, level, color, label in _STATUS_BANDS:
        if compliance_pct >= floor:
            return ComplianceStatus(status=level, color=color, label=label)
    return ComplianceStatus(status=ComplianceStatusLevel.RED, color="red", label="Critical")


def get_severity_level(compliance_pct: float) -> int:
    """Severity level 1 (critical) to 4 (low) used to rank markets."""
    if compliance_pct < 80:
        return 1
    if compliance_pct < 90:
        return 2
    if compliance_pct < 95:
        return 3
    return 4


def calculate_mom_change(current: float, previous: Optional[float]) -> Optional[MomChange]:
    """
    Month-over-month change in compliance percentage points.

    Returns None when there is no previous value. The direction is decided on
    the unrounded delta.
    """
    if previous is None:
        return None

    delta = current - previous
    if delta > MOM_FLAT_TOLERANCE:
        direction = MomDirection.UP
    elif delta < -MOM_FLAT_TOLERANCE:
        direction = MomDirection.DOWN
    else:
        direction = MomDirection.FLAT

    return MomChange(percentage=round2(delta), direction=direction, previousCompliance=previous)


def find_previous_compliance(
    history: Iterable[PriorCompliance],
    market: str,
    year: int,
    month: int,
) -> Optional[float]:
    """Compliance of `market` in the month preceding (year, month), if stored."""
    prior_year, prior_month = previous_period(year, month)
    for entry in history:
        if entry.market == market and entry.year == prior_year and entry.month == prior_month:
            return entry.compliancePct
    return None


# =============================================================================
# Market Compliance
# =============================================================================

def analyze_market_compliance(
    market: str,
    rows: Sequence[PerformanceRow],
    year: Optional[int] = None,
    month: Optional[int] = None,
) -> MarketComplianceRecord:
    """
    Count mapped and unmapped sliced rows of one market.

    Args:
        market: Market code.
        rows: The market's rows for the period; All rows are ignored.
        year: Period year stamped on the record.
        month: Period month stamped on the record.

    Returns:
        MarketComplianceRecord without momChange.
    """
    unmapped_by_field: Dict[str, int] = {field.value: 0 for field in DIMENSION_MAPPED_FIELD.values()}
    total = 0
    unmapped = 0
    total_nvwr = 0.0
    unmapped_nvwr = 0.0

    for row in rows:
        field = DIMENSION_MAPPED_FIELD.get(row.dimension)
        if field is None:
            continue

        total += 1
        total_nvwr += row.nvwr
        if is_not_mapped(getattr(row, field.value)):
            unmapped += 1
            unmapped_by_field[field.value] += 1
            unmapped_nvwr += row.nvwr

    compliance = (total - unmapped) / total * 100 if total else 100.0
    nvwr_pct = unmapped_nvwr / total_nvwr * 100 if total_nvwr else 0.0

    return MarketComplianceRecord(
        market=market,
        year=year,
        month=month,
        totalRecords=total,
        mappedRecords=total - unmapped,
        unmappedRecords=unmapped,
        unmappedByField=UnmappedByField(**unmapped_by_field),
        totalNvwr=total_nvwr,
        unmappedNvwr=unmapped_nvwr,
        unmappedNvwrPct=nvwr_pct,
        compliancePct=compliance,
        status=get_compliance_status(compliance),
        severityLevel=get_severity_level(compliance),
    )


def _empty_report(period_label: Optional[str]) -> ComplianceReport:
    return ComplianceReport(
        period=period_label,
        overallCompliance=0.0,
        summary=ComplianceSummary(complianceStatus=get_compliance_status(0.0)),
        error=NO_DATA,
    )


def analyze_compliance(
    rows: Sequence[PerformanceRow],
    history: Iterable[PriorCompliance] = (),
    period: Optional[str] = None,
) -> ComplianceReport:
    """
    Analyze mapping compliance of every market in one period.

    Args:
        rows: Rows of the period (All rows are ignored).
        history: Previously stored compliance for MoM; may be empty.
        period: 'YYYY-MM'. When omitted, the most recent period present in
            the rows is analyzed.

    Returns:
        ComplianceReport with markets ordered by compliance ascending, then
        market code. Without sliced rows the report carries `error`.
    """
    selected: Optional[Period]
    try:
        selected = parse_period(period) if period else latest_period(rows)
    except ValueError as e:
        logger.warning(str(e))
        return _empty_report(period)

    if selected is None:
        return _empty_report(period)

    year, month = selected
    period_label = format_period(year, month)
    detail_rows = [row for row in filter_rows(rows, period=selected) if row.dimension != Dimension.ALL]
    if not detail_rows:
        logger.info(f"No sliced rows for compliance period {period_label}")
        return _empty_report(period_label)

    by_market: Dict[str, List[PerformanceRow]] = {}
    for row in detail_rows:
        by_market.setdefault(row.market, []).append(row)

    history = list(history)
    records: List[MarketComplianceRecord] = []
    for market in sorted(by_market):
        record = analyze_market_compliance(market, by_market[market], year, month)
        previous = find_previous_compliance(history, market, year, month)
        records.append(record.model_copy(update={"momChange": calculate_mom_change(record.compliancePct, previous)}))

    records.sort(key=lambda record: (record.compliancePct, record.market))

    overall = sum(record.compliancePct for record in records) / len(records)
    unmapped_types = UnmappedByField(**{
        field: sum(getattr(record.unmappedByField, field) for record in records)
        for field in UnmappedByField.model_fields
    })
    total_records = sum(record.totalRecords for record in records)
    total_unmapped = sum(record.unmappedRecords for record in records)

    logger.info(
        f"Compliance {period_label}: {len(records)} markets, overall {overall:.2f}%, "
        f"{total_unmapped}/{total_records} rows unmapped"
    )

    return ComplianceReport(
        period=period_label,
        overallCompliance=overall,
        marketCompliance=records,
        unmappedDataTypes=unmapped_types,
        summary=ComplianceSummary(
            totalRecords=total_records,
            totalUnmapped=total_unmapped,
            mappedRecords=total_records - total_unmapped,
            complianceStatus=get_compliance_status(overall),
        ),
    )
