"""
Pydantic models for the Coverage Compass backend.

Every report produced by the scoring and compliance services is a plain nested
pydantic model (no behaviour beyond trivial accessors), so callers can hand
them straight to `model_dump()` / `model_dump_json()`.

Model groups:
- Input rows: PerformanceRow
- Dimension coverage: MetricTotals, GapResult, MetricGaps, QualityGrade,
  Recommendation, DataGaps, DimensionQualityReport, MarketDiscrepancy,
  MarketAnalysis, ComprehensiveQualityReport, DiscrepancyReport
- Mapping compliance: UnmappedByField, ComplianceStatus, MomChange,
  MarketComplianceRecord, ComplianceReport
- History snapshots: SnapshotKey, ComplianceSnapshot, DimensionCoverageSnapshot
- Processing runs: UnitResult, ProcessingResult, CoverageCheck
- Ingestion and API contracts: ValidationError, request bodies
"""

import calendar
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coverage_compass.models.coercion import normalize_category, parse_numeric
from coverage_compass.models.enums import (
    ComplianceStatusLevel,
    CoreMetric,
    Dimension,
    GapSeverity,
    MomDirection,
    Priority,
    RecommendationType,
)


METRIC_FIELDS = tuple(metric.value for metric in CoreMetric)
CATEGORY_FIELDS = ("model", "phase", "channelType", "channelName", "campaignType")


def month_name(month: int) -> str:
    """Return the English month name for 1-12, 'Unknown' otherwise."""
    if 1 <= month <= 12:
        return calendar.month_name[month]
    return "Unknown"


# =============================================================================
# Input Rows
# =============================================================================


class PerformanceRow(BaseModel):
    """
    One performance record from an All or category-sliced extract.

    The market is an explicit field established by the ingestion
    collaborator; it is never derived from file names. Metric cells that are
    missing or non-numeric are coerced to 0.0 instead of failing validation.
    """
    model_config = ConfigDict(
        frozen=True,
        extra='ignore',
        json_schema_extra={
            "example": {
                "market": "FR",
                "year": 2025,
                "month": 7,
                "dimension": "Model",
                "model": "X3",
                "mediaCost": 1250.5,
                "impressions": 80000,
                "clicks": 1200,
                "iv": 340,
                "nvwr": 42,
            }
        }
    )

    market: str = Field(..., min_length=1, description="Two-letter market code")
    year: int = Field(..., ge=1900, le=9999, description="Calendar year")
    month: int = Field(..., ge=1, le=12, description="Calendar month (1-12)")
    dimension: Dimension = Field(..., description="Extract the row belongs to")

    model: Optional[str] = Field(default=None, description="Model name (Model extract)")
    phase: Optional[str] = Field(default=None, description="Funnel phase (Phase extract)")
    channelType: Optional[str] = Field(default=None, description="Channel type (ChannelType extract)")
    channelName: Optional[str] = Field(default=None, description="Channel name (ChannelName extract)")
    campaignType: Optional[str] = Field(default=None, description="Campaign type (CampaignType extract)")

    mediaCost: float = Field(default=0.0, description="Media spend")
    impressions: float = Field(default=0.0, description="Ad impressions")
    clicks: float = Field(default=0.0, description="Ad clicks")
    iv: float = Field(default=0.0, description="Interested visitors")
    nvwr: float = Field(default=0.0, description="NVWR conversions")

    @field_validator('market', mode='before')
    @classmethod
    def _normalize_market(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator('year', 'month', mode='before')
    @classmethod
    def _parse_period_part(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return value

    @field_validator('dimension', mode='before')
    @classmethod
    def _normalize_dimension(cls, value: Any) -> Any:
        # Extract headers spell dimensions with spaces ("Channel Name")
        if isinstance(value, str):
            return value.replace(' ', '').strip()
        return value

    @field_validator(*CATEGORY_FIELDS, mode='before')
    @classmethod
    def _normalize_category(cls, value: Any) -> Optional[str]:
        return normalize_category(value)

    @field_validator(*METRIC_FIELDS, mode='before')
    @classmethod
    def _coerce_metric(cls, value: Any) -> float:
        return parse_numeric(value)

    @property
    def period(self) -> str:
        """Period key in YYYY-MM form."""
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def dimension_value(self) -> Optional[str]:
        """Categorical value belonging to this row's dimension (None for All)."""
        field_name = self.dimension.field_name
        if not field_name:
            return None
        return getattr(self, field_name)

    def metric_value(self, metric: CoreMetric) -> float:
        return getattr(self, metric.value)


# =============================================================================
# Dimension Coverage Models
# =============================================================================


class MetricTotals(BaseModel):
    """Sum of each core metric over one row selection."""
    model_config = ConfigDict(frozen=True)

    mediaCost: float = 0.0
    impressions: float = 0.0
    clicks: float = 0.0
    iv: float = 0.0
    nvwr: float = 0.0

    def get(self, metric: CoreMetric) -> float:
        return getattr(self, metric.value)


class GapResult(BaseModel):
    """
    Coverage of one metric: how much of the All total the sliced rows reproduce.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "metric": "nvwr",
                "allValue": 1000.0,
                "dimensionValue": 900.0,
                "coveragePct": 90.0,
                "coverageGapPct": 10.0,
                "missingValue": 100.0,
                "severity": "WARNING",
            }
        }
    )

    metric: CoreMetric = Field(..., description="Metric the gap was computed for")
    allValue: float = Field(..., description="Metric total over the All rows")
    dimensionValue: float = Field(..., description="Metric total over the sliced rows")
    coveragePct: float = Field(..., description="dimensionValue / allValue x 100 (100 when allValue is 0)")
    coverageGapPct: float = Field(..., description="100 - coveragePct")
    missingValue: float = Field(..., description="Absolute shortfall against the All total")
    severity: GapSeverity = Field(..., description="OK, WARNING or CRITICAL")


class MetricGaps(BaseModel):
    """Fixed per-metric gap record, one field per core metric."""
    mediaCost: GapResult
    impressions: GapResult
    clicks: GapResult
    iv: GapResult
    nvwr: GapResult

    def get(self, metric: CoreMetric) -> GapResult:
        return getattr(self, metric.value)

    def as_list(self) -> List[GapResult]:
        return [self.get(metric) for metric in CoreMetric]


class QualityGrade(BaseModel):
    """Letter grade with display color and status label."""
    grade: str = Field(..., description="A+, A, B, C, D or F")
    color: str = Field(..., description="Display color hint")
    status: str = Field(..., description="Status label (Excellent ... Critical)")


class Recommendation(BaseModel):
    """Prioritized remediation item."""
    priority: Priority
    type: RecommendationType
    message: str
    action: str
    impact: str
    dimension: Optional[Dimension] = None
    metric: Optional[CoreMetric] = None


class DataGaps(BaseModel):
    """Estimated missing records for one dimension, based on media cost."""
    missingCount: int = Field(default=0, ge=0, description="Estimated number of missing records")
    missingValue: float = Field(default=0.0, description="Missing media cost")
    missingPct: float = Field(default=0.0, description="Media cost coverage gap percentage")


class MarketDiscrepancy(BaseModel):
    """
    Coverage of one dimension for a single market.

    When the market has no All rows for the period, `error` is set and
    coverage, score and gaps are null: nothing could be measured, which is
    different from a measured 0% coverage.
    """
    market: str
    coverage: Optional[float] = Field(default=None, description="100 - unweighted mean of metric gaps")
    score: Optional[float] = Field(default=None, description="Weighted coverage score")
    grade: Optional[QualityGrade] = None
    gaps: Optional[MetricGaps] = None
    totalRecords: int = Field(default=0, ge=0, description="Sliced rows for the market")
    allRecords: int = Field(default=0, ge=0, description="All rows for the market")
    error: Optional[str] = None


class DimensionQualityReport(BaseModel):
    """Data-quality score of one sliced dimension."""
    dimension: Dimension
    overallScore: float = Field(..., description="Weighted average of 100 - coverage gap")
    grade: QualityGrade
    metricScores: List[GapResult] = Field(default_factory=list)
    dataGaps: DataGaps = Field(default_factory=DataGaps)
    recommendations: List[Recommendation] = Field(default_factory=list)
    marketDiscrepancies: Dict[str, MarketDiscrepancy] = Field(default_factory=dict)
    recordCount: int = Field(default=0, ge=0, description="Sliced rows scored")
    error: Optional[str] = None


class MarketIssue(BaseModel):
    """A dimension whose coverage falls below 80% for one market."""
    dimension: Dimension
    coverage: float
    severity: GapSeverity


class MarketAnalysis(BaseModel):
    """Roll-up of a single market's per-dimension coverage."""
    market: str
    overallCoverage: Optional[float] = None
    grade: Optional[QualityGrade] = None
    dimensionScores: Dict[str, MarketDiscrepancy] = Field(default_factory=dict)
    criticalIssues: List[MarketIssue] = Field(default_factory=list)
    error: Optional[str] = None


class ComprehensiveQualityReport(BaseModel):
    """Market x dimension data-quality report for one selection."""
    market: str
    period: str
    overallScore: float
    grade: QualityGrade
    dimensionBreakdown: Dict[str, DimensionQualityReport] = Field(default_factory=dict)
    criticalIssues: List[Recommendation] = Field(default_factory=list)
    dataCompleteness: int = Field(default=0, ge=0, le=100)
    marketAnalysis: Dict[str, MarketAnalysis] = Field(default_factory=dict)
    error: Optional[str] = None


class DiscrepancySummary(BaseModel):
    missingSpend: float = 0.0
    missingImpressions: float = 0.0
    dataGaps: int = 0
    criticalIssues: int = 0


class MetricBreakdown(BaseModel):
    """Coverage of one metric across all scored dimensions."""
    metric: CoreMetric
    averageCoverage: float = 0.0
    worstDimension: Optional[Dimension] = None
    bestDimension: Optional[Dimension] = None
    totalGap: float = 0.0


class DimensionGapEntry(BaseModel):
    dimension: Dimension
    score: float
    grade: str
    dataGaps: DataGaps


class DiscrepancyActions(BaseModel):
    immediate: List[Recommendation] = Field(default_factory=list)
    shortTerm: List[Recommendation] = Field(default_factory=list)
    preventive: List[Recommendation] = Field(default_factory=list)


class DiscrepancyReport(BaseModel):
    """Actionable summary derived from a ComprehensiveQualityReport."""
    summary: DiscrepancySummary
    byMetric: Dict[str, MetricBreakdown] = Field(default_factory=dict)
    dataGaps: List[DimensionGapEntry] = Field(default_factory=list)
    actions: DiscrepancyActions = Field(default_factory=DiscrepancyActions)


# =============================================================================
# Mapping Compliance Models
# =============================================================================


class UnmappedByField(BaseModel):
    """Unmapped row counts per tracked categorical field."""
    model: int = 0
    phase: int = 0
    channelType: int = 0
    channelName: int = 0
    campaignType: int = 0

    def total(self) -> int:
        return self.model + self.phase + self.channelType + self.channelName + self.campaignType


class ComplianceStatus(BaseModel):
    """Traffic-light compliance bucket."""
    status: ComplianceStatusLevel
    color: str
    label: str


class MomChange(BaseModel):
    """
    Month-over-month compliance change.

    `percentage` is the difference in compliance percentage points between
    the current and the previous period.
    """
    percentage: float
    direction: MomDirection
    previousCompliance: float


class MarketComplianceRecord(BaseModel):
    """Mapping compliance of one market for one period."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "market": "FR",
                "year": 2025,
                "month": 7,
                "totalRecords": 200,
                "mappedRecords": 171,
                "unmappedRecords": 29,
                "unmappedByField": {"model": 12, "phase": 0, "channelType": 3,
                                    "channelName": 14, "campaignType": 0},
                "totalNvwr": 5400.0,
                "unmappedNvwr": 310.0,
                "unmappedNvwrPct": 5.74,
                "compliancePct": 85.5,
                "status": {"status": "Orange", "color": "orange", "label": "Needs Attention"},
                "severityLevel": 2,
                "momChange": {"percentage": 5.5, "direction": "up", "previousCompliance": 80.0},
            }
        }
    )

    market: str
    year: Optional[int] = None
    month: Optional[int] = None
    totalRecords: int = Field(default=0, ge=0)
    mappedRecords: int = Field(default=0, ge=0)
    unmappedRecords: int = Field(default=0, ge=0)
    unmappedByField: UnmappedByField = Field(default_factory=UnmappedByField)
    totalNvwr: float = 0.0
    unmappedNvwr: float = 0.0
    unmappedNvwrPct: float = 0.0
    compliancePct: float = 100.0
    status: ComplianceStatus
    severityLevel: int = Field(..., ge=1, le=4, description="1 critical ... 4 low")
    momChange: Optional[MomChange] = None


class ComplianceSummary(BaseModel):
    totalRecords: int = 0
    totalUnmapped: int = 0
    mappedRecords: int = 0
    complianceStatus: ComplianceStatus


class ComplianceReport(BaseModel):
    """Mapping compliance across all markets of one selection."""
    period: Optional[str] = None
    overallCompliance: float = 0.0
    marketCompliance: List[MarketComplianceRecord] = Field(default_factory=list)
    unmappedDataTypes: UnmappedByField = Field(default_factory=UnmappedByField)
    summary: ComplianceSummary
    error: Optional[str] = None


# =============================================================================
# History Snapshots
# =============================================================================


class SnapshotKey(NamedTuple):
    """Upsert key of a history snapshot; dimension is None for compliance."""
    market: str
    year: int
    month: int
    dimension: Optional[str] = None


class ComplianceSnapshot(BaseModel):
    """Persisted compliance of one market-month, read by the next run's MoM."""
    market: str
    year: int
    month: int = Field(..., ge=1, le=12)
    monthName: str = ""
    totalRecords: int = 0
    mappedRecords: int = 0
    unmappedRecords: int = 0
    compliancePct: float = 0.0
    totalNvwr: float = 0.0
    unmappedNvwr: float = 0.0
    unmappedNvwrPct: float = 0.0
    unmappedByField: UnmappedByField = Field(default_factory=UnmappedByField)
    updatedAt: Optional[datetime] = None

    @property
    def key(self) -> SnapshotKey:
        return SnapshotKey(self.market, self.year, self.month)

    @classmethod
    def from_record(cls, record: MarketComplianceRecord, year: int, month: int) -> "ComplianceSnapshot":
        return cls(
            market=record.market,
            year=year,
            month=month,
            monthName=month_name(month),
            totalRecords=record.totalRecords,
            mappedRecords=record.mappedRecords,
            unmappedRecords=record.unmappedRecords,
            compliancePct=record.compliancePct,
            totalNvwr=record.totalNvwr,
            unmappedNvwr=record.unmappedNvwr,
            unmappedNvwrPct=record.unmappedNvwrPct,
            unmappedByField=record.unmappedByField,
        )


class DimensionCoverageSnapshot(BaseModel):
    """Persisted coverage of one market-month-dimension, used for trends."""
    market: str
    year: int
    month: int = Field(..., ge=1, le=12)
    monthName: str = ""
    dimension: Dimension
    overallCoverage: float = 0.0

    mediaCostGap: float = 0.0
    impressionsGap: float = 0.0
    clicksGap: float = 0.0
    ivGap: float = 0.0
    nvwrGap: float = 0.0

    missingMediaCost: float = 0.0
    missingImpressions: float = 0.0
    missingClicks: float = 0.0
    missingIv: float = 0.0
    missingNvwr: float = 0.0

    allMediaCost: float = 0.0
    allImpressions: float = 0.0
    allClicks: float = 0.0
    allIv: float = 0.0
    allNvwr: float = 0.0

    dimensionMediaCost: float = 0.0
    dimensionImpressions: float = 0.0
    dimensionClicks: float = 0.0
    dimensionIv: float = 0.0
    dimensionNvwr: float = 0.0

    updatedAt: Optional[datetime] = None

    @property
    def key(self) -> SnapshotKey:
        return SnapshotKey(self.market, self.year, self.month, self.dimension.value)

    @classmethod
    def from_discrepancy(
        cls,
        discrepancy: MarketDiscrepancy,
        dimension: Dimension,
        year: int,
        month: int,
    ) -> "DimensionCoverageSnapshot":
        values: Dict[str, Any] = {
            "market": discrepancy.market,
            "year": year,
            "month": month,
            "monthName": month_name(month),
            "dimension": dimension,
            "overallCoverage": discrepancy.coverage or 0.0,
        }
        if discrepancy.gaps is not None:
            for metric in CoreMetric:
                gap = discrepancy.gaps.get(metric)
                suffix = metric.value[0].upper() + metric.value[1:]
                values[f"{metric.value}Gap"] = gap.coverageGapPct
                values[f"missing{suffix}"] = gap.missingValue
                values[f"all{suffix}"] = gap.allValue
                values[f"dimension{suffix}"] = gap.dimensionValue
        return cls(**values)


# =============================================================================
# Processing Runs
# =============================================================================


class UnitResult(BaseModel):
    """
    Outcome of one (market, period) processing unit.

    History failures are recorded here instead of aborting the run.
    """
    market: str
    year: int
    month: int
    success: bool = True
    records: int = 0
    snapshotsWritten: int = 0
    momAvailable: bool = False
    errors: List[str] = Field(default_factory=list)


class ProcessingResult(BaseModel):
    success: bool
    message: str
    results: List[UnitResult] = Field(default_factory=list)


class CoverageCheck(BaseModel):
    """Which (market, period) units of a row set lack a stored compliance snapshot."""
    hasData: bool = False
    totalPeriods: int = 0
    coveredPeriods: int = 0
    missingPeriods: List[str] = Field(default_factory=list)
    needsProcessing: bool = False


# =============================================================================
# Ingestion and API Contracts
# =============================================================================


class ValidationError(BaseModel):
    """Validation error detail reported by the ingestion adapter."""
    field: str = Field(..., description="Field with validation error")
    message: str = Field(..., description="Error message")
    row_number: Optional[int] = Field(default=None, ge=1, description="Row number where error occurred")


class QualityReportRequest(BaseModel):
    rows: List[PerformanceRow] = Field(default_factory=list)
    market: str = Field(default="all", description="Market code or 'all'")
    period: str = Field(default="all-periods", description="YYYY-MM or 'all-periods'")


class ComplianceRequest(BaseModel):
    rows: List[PerformanceRow] = Field(default_factory=list)
    period: Optional[str] = Field(default=None, description="YYYY-MM; derived from rows when omitted")


class ProcessRequest(BaseModel):
    rows: List[PerformanceRow] = Field(default_factory=list)
