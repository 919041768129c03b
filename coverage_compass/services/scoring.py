"""
Data Quality Scorer Service

Scores one category-sliced dimension against the All totals of the same
selection. For each of the five core metrics it computes the coverage gap,
combines the gaps into a weighted composite score, assigns a letter grade
and emits prioritized remediation recommendations.

Scoring rules:
- Composite score = sum(weight x (100 - coverage gap)) with weights
  mediaCost .25, impressions .20, clicks .15, iv .20, nvwr .20
- Grade: A+ above 95, A >= 90, B >= 80, C >= 70, D >= 60, F below
- Recommendations: one HIGH summary if any metric is CRITICAL, one MEDIUM
  summary if any is WARNING, then one item per metric whose gap exceeds 5%

A dimension without rows is reported with score 0, grade F and an error
marker so the orchestrator can exclude it from the composite mean.
"""

import logging
from typing import Iterable, List, Sequence

from coverage_compass.models.enums import (
    CoreMetric,
    Dimension,
    GapSeverity,
    Priority,
    RecommendationType,
)
from coverage_compass.models.schemas import (
    DataGaps,
    DimensionQualityReport,
    GapResult,
    MetricGaps,
    MetricTotals,
    PerformanceRow,
    QualityGrade,
    Recommendation,
)
from coverage_compass.services.aggregation import aggregate_totals
from coverage_compass.services.gaps import calculate_metric_gap, round2


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# A metric gap above this percentage gets its own recommendation
METRIC_GAP_RECOMMENDATION_THRESHOLD: float = 5.0

NO_DIMENSION_DATA: str = "no dimension-data"

# (lower bound, grade, color, status); A+ requires strictly more than 95
_GRADE_BANDS = (
    (90.0, "A", "green", "Good"),
    (80.0, "B", "yellow", "Acceptable"),
    (70.0, "C", "orange", "Needs Attention"),
    (60.0, "D", "red", "Poor"),
)
# Media-cost-only 80% coverage weighs in at exactly 95.0 and grades A
_TOP_GRADE_FLOOR: float = 95.0


# =============================================================================
# Building Blocks
# =============================================================================

def calculate_metric_gaps(all_totals: MetricTotals, dimension_totals: MetricTotals) -> MetricGaps:
    """Build the fixed per-metric gap record for two sets of totals."""
    return MetricGaps(**{
        metric.value: calculate_metric_gap(metric, all_totals.get(metric), dimension_totals.get(metric))
        for metric in CoreMetric
    })


def calculate_discrepancies(
    all_totals: MetricTotals,
    dimension_rows: Iterable[PerformanceRow],
) -> List[GapResult]:
    """
    Compute the GapResult of every core metric, in fixed metric order.

    Args:
        all_totals: Metric totals of the All rows.
        dimension_rows: Rows of one sliced dimension.

    Returns:
        Five GapResults ordered mediaCost, impressions, clicks, iv, nvwr.
    """
    return calculate_metric_gaps(all_totals, aggregate_totals(dimension_rows)).as_list()


def calculate_weighted_score(gaps: Iterable[GapResult]) -> float:
    """
    Weighted composite of (100 - coverage gap) across the given metrics.

    Scenario: coverages {80, 100, 100, 100, 100} give
    80 x .25 + 100 x .75 = 95.0.
    """
    return sum(gap.metric.weight * (100.0 - gap.coverageGapPct) for gap in gaps)


def get_quality_grade(score: float) -> QualityGrade:
    """Map a 0-100 score to its letter grade, color and status label."""
    if score > _TOP_GRADE_FLOOR:
        return QualityGrade(grade="A+", color="green", status="Excellent")
    for floor, grade, color, status in _GRADE_BANDS:
        if score >= floor:
            return QualityGrade(grade=grade, color=color, status=status)
    return QualityGrade(grade="F", color="darkred", status="Critical")


def identify_data_gaps(
    gaps: Sequence[GapResult],
    dimension_rows: Sequence[PerformanceRow],
) -> DataGaps:
    """
    Estimate how many records are missing from a dimension.

    The estimate divides the missing media cost by the dimension's average
    media cost per record. Over-reported dimensions estimate 0 records.
    """
    media_cost = next((gap for gap in gaps if gap.metric == CoreMetric.MEDIA_COST), None)
    if media_cost is None:
        return DataGaps()

    missing_count = 0
    if dimension_rows:
        average = media_cost.dimensionValue / len(dimension_rows)
        if average > 0:
            missing_count = max(0, int(round(media_cost.missingValue / average)))

    return DataGaps(
        missingCount=missing_count,
        missingValue=media_cost.missingValue,
        missingPct=media_cost.coverageGapPct,
    )


def generate_recommendations(gaps: Sequence[GapResult], dimension: Dimension) -> List[Recommendation]:
    """
    Build the ordered recommendation list for one dimension.

    Summary items come first (CRITICAL before WARNING), followed by one
    METRIC_GAP item per metric above the 5% gap threshold in metric order.
    """
    recommendations: List[Recommendation] = []
    label = dimension.label

    critical = [gap for gap in gaps if gap.severity == GapSeverity.CRITICAL]
    warnings = [gap for gap in gaps if gap.severity == GapSeverity.WARNING]

    if critical:
        recommendations.append(Recommendation(
            priority=Priority.HIGH,
            type=RecommendationType.CRITICAL,
            message=f"{len(critical)} critical data gaps detected in {label}",
            action="Review data completeness and mapping in Datorama",
            impact="Insights may be significantly unreliable",
            dimension=dimension,
        ))

    if warnings:
        recommendations.append(Recommendation(
            priority=Priority.MEDIUM,
            type=RecommendationType.WARNING,
            message=f"{len(warnings)} data gaps detected in {label}",
            action="Verify data categorization and completeness in Datorama",
            impact="Some insights may be affected",
            dimension=dimension,
        ))

    for gap in gaps:
        if gap.coverageGapPct <= METRIC_GAP_RECOMMENDATION_THRESHOLD:
            continue
        metric_label = gap.metric.label
        recommendations.append(Recommendation(
            priority=Priority.HIGH if gap.severity == GapSeverity.CRITICAL else Priority.MEDIUM,
            type=RecommendationType.METRIC_GAP,
            message=f"{metric_label}: {gap.coverageGapPct:g}% total gap ({gap.coverageGapPct:g}% missing data)",
            action=f"Check {metric_label} in {label} - ensure all campaigns are included in dimension file",
            impact=f"{metric_label} insights may be incomplete",
            dimension=dimension,
            metric=gap.metric,
        ))

    return recommendations


def no_dimension_data_report(dimension: Dimension) -> DimensionQualityReport:
    """Report for a dimension that has no rows in the selection."""
    return DimensionQualityReport(
        dimension=dimension,
        overallScore=0.0,
        grade=get_quality_grade(0.0),
        recommendations=[Recommendation(
            priority=Priority.HIGH,
            type=RecommendationType.NO_DATA,
            message="No dimension data available",
            action="Upload dimension-specific data file",
            impact="Cannot calculate quality score",
            dimension=dimension,
        )],
        error=NO_DIMENSION_DATA,
    )


# =============================================================================
# Dimension Score
# =============================================================================

def calculate_data_quality_score(
    all_totals: MetricTotals,
    dimension_rows: Sequence[PerformanceRow],
    dimension: Dimension,
) -> DimensionQualityReport:
    """
    Score one sliced dimension against the All totals.

    Args:
        all_totals: Metric totals of the selection's All rows.
        dimension_rows: The selection's rows for this dimension.
        dimension: Dimension being scored.

    Returns:
        DimensionQualityReport without market discrepancies (the orchestrator
        attaches those).
    """
    rows = list(dimension_rows)
    if not rows:
        logger.debug(f"No rows for dimension {dimension.value}")
        return no_dimension_data_report(dimension)

    gaps = calculate_discrepancies(all_totals, rows)
    score = round2(calculate_weighted_score(gaps))

    return DimensionQualityReport(
        dimension=dimension,
        overallScore=score,
        grade=get_quality_grade(score),
        metricScores=gaps,
        dataGaps=identify_data_gaps(gaps, rows),
        recommendations=generate_recommendations(gaps, dimension),
        recordCount=len(rows),
    )
