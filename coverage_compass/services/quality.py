"""
Comprehensive Data Quality Service

Builds the market x dimension data-quality report for one selection and the
actionable discrepancy report derived from it.

Flow of calculate_comprehensive_data_quality():
1. Resolve the market selector ('all' or a code) and period selector
   ('YYYY-MM' or 'all-periods')
2. Aggregate the All totals of the selection
3. Score every sliced dimension (ChannelName, ChannelType, CampaignType,
   Model, Phase) and attach its per-market discrepancies
4. Average the scores of dimensions that had data into the overall score
5. Roll the per-market coverage up into a market analysis

The whole flow is a pure function of its inputs: the same rows and selectors
always produce an identical report.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from coverage_compass.models.enums import (
    SCORED_DIMENSIONS,
    CoreMetric,
    Dimension,
    GapSeverity,
    Priority,
    RecommendationType,
)
from coverage_compass.models.schemas import (
    ComprehensiveQualityReport,
    DimensionGapEntry,
    DimensionQualityReport,
    DiscrepancyActions,
    DiscrepancyReport,
    DiscrepancySummary,
    MarketAnalysis,
    MarketIssue,
    MetricBreakdown,
    PerformanceRow,
    Recommendation,
)
from coverage_compass.services.aggregation import aggregate_totals
from coverage_compass.services.gaps import round2
from coverage_compass.services.market_discrepancy import NO_ALL_DATA, calculate_market_discrepancies
from coverage_compass.services.scoring import calculate_data_quality_score, get_quality_grade
from coverage_compass.services.selection import (
    ALL_MARKETS,
    ALL_PERIODS,
    filter_rows,
    parse_period,
    select_markets,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Market-level coverage thresholds for the market analysis
MARKET_ISSUE_COVERAGE: float = 80.0
MARKET_CRITICAL_COVERAGE: float = 60.0

# Dimensions scoring below this are listed in the discrepancy report
DATA_GAP_SCORE_THRESHOLD: float = 80.0


# =============================================================================
# Comprehensive Report
# =============================================================================

def _selection_labels(market: str, period: str) -> Tuple[str, str]:
    market_label = "All Markets" if market.strip().lower() == ALL_MARKETS else market.strip().upper()
    period_label = "All Periods" if period == ALL_PERIODS else period
    return market_label, period_label


def _empty_report(market_label: str, period_label: str, error: str) -> ComprehensiveQualityReport:
    return ComprehensiveQualityReport(
        market=market_label,
        period=period_label,
        overallScore=0.0,
        grade=get_quality_grade(0.0),
        error=error,
    )


def calculate_comprehensive_data_quality(
    rows: Sequence[PerformanceRow],
    market: str = ALL_MARKETS,
    period: str = ALL_PERIODS,
) -> ComprehensiveQualityReport:
    """
    Score every sliced dimension of a market/period selection.

    Args:
        rows: All and sliced rows (any markets and periods).
        market: Market code or 'all'.
        period: 'YYYY-MM' or 'all-periods'.

    Returns:
        ComprehensiveQualityReport. An empty selection, or an invalid period
        selector, produces a report with score 0, grade F and `error` set;
        this function never raises on data.
    """
    market_label, period_label = _selection_labels(market, period)

    try:
        selected_period = parse_period(period)
    except ValueError as e:
        logger.warning(str(e))
        return _empty_report(market_label, period_label, f"invalid period: {period}")

    period_rows = filter_rows(rows, period=selected_period)
    markets = select_markets(period_rows, market)
    selected_rows = filter_rows(period_rows, markets=markets)
    all_rows = filter_rows(selected_rows, dimension=Dimension.ALL)

    if not all_rows:
        logger.info(f"No All rows for {market_label} / {period_label}")
        return _empty_report(market_label, period_label, NO_ALL_DATA)

    all_totals = aggregate_totals(all_rows)

    breakdown: Dict[str, DimensionQualityReport] = {}
    for dimension in SCORED_DIMENSIONS:
        dimension_rows = filter_rows(selected_rows, dimension=dimension)
        report = calculate_data_quality_score(all_totals, dimension_rows, dimension)
        discrepancies = calculate_market_discrepancies(all_rows, dimension_rows, dimension, markets)
        breakdown[dimension.value] = report.model_copy(update={"marketDiscrepancies": discrepancies})

    scored = [report.overallScore for report in breakdown.values() if report.error is None]
    overall_score = round2(sum(scored) / len(scored)) if scored else 0.0

    with_score = sum(1 for report in breakdown.values() if report.overallScore > 0)
    data_completeness = int(round(with_score / len(SCORED_DIMENSIONS) * 100))

    critical_issues = [
        recommendation
        for report in breakdown.values()
        for recommendation in report.recommendations
        if recommendation.priority == Priority.HIGH
    ]

    logger.info(
        f"Quality report {market_label} / {period_label}: score {overall_score}, "
        f"{len(scored)}/{len(SCORED_DIMENSIONS)} dimensions scored, "
        f"{len(critical_issues)} critical issues"
    )

    return ComprehensiveQualityReport(
        market=market_label,
        period=period_label,
        overallScore=overall_score,
        grade=get_quality_grade(overall_score),
        dimensionBreakdown=breakdown,
        criticalIssues=critical_issues,
        dataCompleteness=data_completeness,
        marketAnalysis=generate_market_analysis(breakdown, markets),
    )


def generate_market_analysis(
    breakdown: Dict[str, DimensionQualityReport],
    markets: Sequence[str],
) -> Dict[str, MarketAnalysis]:
    """
    Roll each market's per-dimension coverage up into one analysis.

    Only dimensions measured for the market (no error marker) contribute to
    its overall coverage. Dimensions below 80% coverage are listed as issues,
    CRITICAL below 60%.
    """
    analysis: Dict[str, MarketAnalysis] = {}

    for market in markets:
        scores = {
            name: report.marketDiscrepancies[market]
            for name, report in breakdown.items()
            if market in report.marketDiscrepancies
        }
        measured = {name: result for name, result in scores.items() if result.error is None}

        if not measured:
            analysis[market] = MarketAnalysis(market=market, dimensionScores=scores, error=NO_ALL_DATA)
            continue

        coverage = round2(sum(result.coverage for result in measured.values()) / len(measured))
        issues = [
            MarketIssue(
                dimension=Dimension(name),
                coverage=result.coverage,
                severity=(
                    GapSeverity.CRITICAL if result.coverage < MARKET_CRITICAL_COVERAGE
                    else GapSeverity.WARNING
                ),
            )
            for name, result in measured.items()
            if result.coverage < MARKET_ISSUE_COVERAGE
        ]

        analysis[market] = MarketAnalysis(
            market=market,
            overallCoverage=coverage,
            grade=get_quality_grade(coverage),
            dimensionScores=scores,
            criticalIssues=issues,
        )

    return analysis


# =============================================================================
# Discrepancy Report
# =============================================================================

def generate_metric_breakdown(report: ComprehensiveQualityReport) -> Dict[str, MetricBreakdown]:
    """
    Summarize each metric's coverage across the scored dimensions.

    The worst dimension is the one with the lowest coverage, the best the one
    with the highest; ties keep the first dimension in scoring order.
    """
    breakdown: Dict[str, MetricBreakdown] = {}

    for metric in CoreMetric:
        entries = [
            (Dimension(name), gap)
            for name, dimension_report in report.dimensionBreakdown.items()
            for gap in dimension_report.metricScores
            if gap.metric == metric
        ]
        if not entries:
            breakdown[metric.value] = MetricBreakdown(metric=metric)
            continue

        worst = min(entries, key=lambda entry: entry[1].coveragePct)
        best = max(entries, key=lambda entry: entry[1].coveragePct)
        breakdown[metric.value] = MetricBreakdown(
            metric=metric,
            averageCoverage=round2(sum(gap.coveragePct for _, gap in entries) / len(entries)),
            worstDimension=worst[0],
            bestDimension=best[0],
            totalGap=round2(sum(gap.coverageGapPct for _, gap in entries)),
        )

    return breakdown


def generate_preventive_actions(report: ComprehensiveQualityReport) -> List[Recommendation]:
    """Process-level recommendations driven by the composite score and completeness."""
    actions: List[Recommendation] = []

    if report.overallScore < DATA_GAP_SCORE_THRESHOLD:
        actions.append(Recommendation(
            priority=Priority.MEDIUM,
            type=RecommendationType.PREVENTIVE,
            message="Implement data quality monitoring",
            action="Set up automated alerts for data gaps > 10%",
            impact="Prevent future data quality issues",
        ))

    if report.dataCompleteness < 100:
        actions.append(Recommendation(
            priority=Priority.MEDIUM,
            type=RecommendationType.PREVENTIVE,
            message="Standardize data upload process",
            action="Ensure all dimension files are uploaded for each period",
            impact="Improve data completeness",
        ))

    return actions


def generate_discrepancy_report(report: ComprehensiveQualityReport) -> DiscrepancyReport:
    """
    Derive an actionable discrepancy summary from a comprehensive report.

    Args:
        report: Output of calculate_comprehensive_data_quality().

    Returns:
        DiscrepancyReport with missing spend/impressions totals, a per-metric
        breakdown, the dimensions scoring below 80 and bucketed actions.
    """
    dimensions = list(report.dimensionBreakdown.values())

    missing_spend = sum(dimension.dataGaps.missingValue for dimension in dimensions)
    missing_impressions = sum(
        gap.missingValue
        for dimension in dimensions
        for gap in dimension.metricScores
        if gap.metric == CoreMetric.IMPRESSIONS
    )

    data_gaps = [
        DimensionGapEntry(
            dimension=dimension.dimension,
            score=dimension.overallScore,
            grade=dimension.grade.grade,
            dataGaps=dimension.dataGaps,
        )
        for dimension in dimensions
        if dimension.overallScore < DATA_GAP_SCORE_THRESHOLD
    ]

    immediate = [
        recommendation
        for recommendation in report.criticalIssues
        if recommendation.type in (RecommendationType.CRITICAL, RecommendationType.NO_DATA)
    ]
    short_term = [
        recommendation
        for dimension in dimensions
        for recommendation in dimension.recommendations
        if recommendation.type == RecommendationType.WARNING
    ]

    return DiscrepancyReport(
        summary=DiscrepancySummary(
            missingSpend=round2(missing_spend),
            missingImpressions=round2(missing_impressions),
            dataGaps=len(data_gaps),
            criticalIssues=len(report.criticalIssues),
        ),
        byMetric=generate_metric_breakdown(report),
        dataGaps=data_gaps,
        actions=DiscrepancyActions(
            immediate=immediate,
            shortTerm=short_term,
            preventive=generate_preventive_actions(report),
        ),
    )
