"""
Coverage gap calculation for a single metric.

Compares an aggregate All total with the same metric summed over one
dimension's rows:

    coveragePct    = 100 when allTotal == 0, else round2(dimensionTotal / allTotal * 100)
    coverageGapPct = 100 - coveragePct
    missingValue   = allTotal * coverageGapPct / 100

Coverage is never clamped: a dimension that over-reports yields coverage above
100 and a negative gap.
"""

from coverage_compass.models.enums import CoreMetric, GapSeverity
from coverage_compass.models.schemas import GapResult


# Gap thresholds (percentage points)
WARNING_GAP_THRESHOLD: float = 10.0
CRITICAL_GAP_THRESHOLD: float = 20.0


def round2(value: float) -> float:
    return round(value, 2)


def classify_severity(gap_pct: float) -> GapSeverity:
    """
    Map a coverage gap to a severity.

    - CRITICAL: gap > 20
    - WARNING: 10 <= gap <= 20
    - OK: gap < 10
    """
    if gap_pct > CRITICAL_GAP_THRESHOLD:
        return GapSeverity.CRITICAL
    if gap_pct >= WARNING_GAP_THRESHOLD:
        return GapSeverity.WARNING
    return GapSeverity.OK


def calculate_metric_gap(
    metric: CoreMetric,
    all_total: float,
    dimension_total: float,
) -> GapResult:
    """
    Compute coverage, gap, missing value and severity for one metric.

    Args:
        metric: Metric being compared.
        all_total: Metric total over the All rows.
        dimension_total: Metric total over the dimension's rows.

    Returns:
        GapResult for the metric.

    Example:
        >>> gap = calculate_metric_gap(CoreMetric.NVWR, 1000, 900)
        >>> gap.coveragePct, gap.coverageGapPct, gap.missingValue
        (90.0, 10.0, 100.0)
    """
    if all_total == 0:
        coverage = 100.0
    else:
        coverage = round2(dimension_total / all_total * 100)

    gap = round2(100.0 - coverage)
    missing = round2(all_total * gap / 100)

    return GapResult(
        metric=metric,
        allValue=round2(all_total),
        dimensionValue=round2(dimension_total),
        coveragePct=coverage,
        coverageGapPct=gap,
        missingValue=missing,
        severity=classify_severity(gap),
    )
