"""
Models package for the Coverage Compass backend.

Re-exports the enums and pydantic schemas so callers can write:

    from coverage_compass.models import PerformanceRow, Dimension, CoreMetric
"""

from coverage_compass.models.enums import (
    Dimension,
    CoreMetric,
    GapSeverity,
    Priority,
    RecommendationType,
    ComplianceStatusLevel,
    MomDirection,
    MappedField,
    HistoryKind,
    SCORED_DIMENSIONS,
    METRIC_WEIGHTS,
    DIMENSION_MAPPED_FIELD,
)
from coverage_compass.models.schemas import (
    PerformanceRow,
    MetricTotals,
    GapResult,
    MetricGaps,
    QualityGrade,
    Recommendation,
    DataGaps,
    MarketDiscrepancy,
    DimensionQualityReport,
    MarketIssue,
    MarketAnalysis,
    ComprehensiveQualityReport,
    DiscrepancySummary,
    MetricBreakdown,
    DimensionGapEntry,
    DiscrepancyActions,
    DiscrepancyReport,
    UnmappedByField,
    ComplianceStatus,
    MomChange,
    MarketComplianceRecord,
    ComplianceSummary,
    ComplianceReport,
    SnapshotKey,
    ComplianceSnapshot,
    DimensionCoverageSnapshot,
    UnitResult,
    ProcessingResult,
    CoverageCheck,
    ValidationError,
    QualityReportRequest,
    ComplianceRequest,
    ProcessRequest,
    month_name,
)

__all__ = [
    # ----- Enums -----
    'Dimension',
    'CoreMetric',
    'GapSeverity',
    'Priority',
    'RecommendationType',
    'ComplianceStatusLevel',
    'MomDirection',
    'MappedField',
    'HistoryKind',
    'SCORED_DIMENSIONS',
    'METRIC_WEIGHTS',
    'DIMENSION_MAPPED_FIELD',
    # ----- Rows -----
    'PerformanceRow',
    # ----- Dimension coverage -----
    'MetricTotals',
    'GapResult',
    'MetricGaps',
    'QualityGrade',
    'Recommendation',
    'DataGaps',
    'MarketDiscrepancy',
    'DimensionQualityReport',
    'MarketIssue',
    'MarketAnalysis',
    'ComprehensiveQualityReport',
    'DiscrepancySummary',
    'MetricBreakdown',
    'DimensionGapEntry',
    'DiscrepancyActions',
    'DiscrepancyReport',
    # ----- Compliance -----
    'UnmappedByField',
    'ComplianceStatus',
    'MomChange',
    'MarketComplianceRecord',
    'ComplianceSummary',
    'ComplianceReport',
    # ----- History -----
    'SnapshotKey',
    'ComplianceSnapshot',
    'DimensionCoverageSnapshot',
    # ----- Processing -----
    'UnitResult',
    'ProcessingResult',
    'CoverageCheck',
    # ----- Ingestion / API -----
    'ValidationError',
    'QualityReportRequest',
    'ComplianceRequest',
    'ProcessRequest',
    'month_name',
]
