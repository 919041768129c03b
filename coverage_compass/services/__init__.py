"""
Coverage Compass Services Module

Business logic for dimension coverage reconciliation, data-quality scoring and
mapping compliance. The compute services are pure and synchronous; only the
history store and the period processing are async.

Services:
- selection: market/period selectors and row filtering
- aggregation: metric sums over row collections
- gaps: per-metric coverage gap and severity
- scoring: weighted dimension score, grade, recommendations
- market_discrepancy: per-market reconciliation of one dimension
- quality: comprehensive market x dimension report and discrepancy report
- compliance: mapping compliance with month-over-month change
- history: HistoryStore contract with in-memory and PostgreSQL adapters
- processing: per (market, period) history processing
- ingestion: extract parsing into PerformanceRows

All services are consumed by the API layer (coverage_compass/api/).
"""

# =============================================================================
# Selection and Aggregation Exports
# =============================================================================

from coverage_compass.services.selection import (
    ALL_MARKETS,
    ALL_PERIODS,
    parse_period,
    format_period,
    previous_period,
    latest_period,
    select_markets,
    filter_rows,
)
from coverage_compass.services.aggregation import (
    parse_numeric,
    resolve_metric,
    sum_metric,
    aggregate_totals,
)

# =============================================================================
# Gap and Scoring Exports
# Coverage gap per metric, weighted composite score, grade and recommendations
# =============================================================================

from coverage_compass.services.gaps import (
    classify_severity,
    calculate_metric_gap,
    WARNING_GAP_THRESHOLD,
    CRITICAL_GAP_THRESHOLD,
)
from coverage_compass.services.scoring import (
    calculate_metric_gaps,
    calculate_discrepancies,
    calculate_weighted_score,
    get_quality_grade,
    identify_data_gaps,
    generate_recommendations,
    calculate_data_quality_score,
)
from coverage_compass.services.market_discrepancy import (
    calculate_market_discrepancy,
    calculate_market_discrepancies,
)

# =============================================================================
# Comprehensive Quality Exports
# =============================================================================

from coverage_compass.services.quality import (
    calculate_comprehensive_data_quality,
    generate_market_analysis,
    generate_metric_breakdown,
    generate_preventive_actions,
    generate_discrepancy_report,
)

# =============================================================================
# Compliance Exports
# Mapping compliance per market with month-over-month change
# =============================================================================

from coverage_compass.services.compliance import (
    is_not_mapped,
    get_compliance_status,
    get_severity_level,
    calculate_mom_change,
    find_previous_compliance,
    analyze_market_compliance,
    analyze_compliance,
)

# =============================================================================
# History and Processing Exports
# Snapshot persistence and per (market, period) processing runs
# =============================================================================

from coverage_compass.services.history import (
    HistoryUnavailableError,
    HistoryStore,
    InMemoryHistoryStore,
    PostgresHistoryStore,
    HistoryStores,
    create_history_stores,
)
from coverage_compass.services.processing import (
    group_rows_by_unit,
    load_previous_compliance,
    process_compliance_history,
    process_dimension_coverage_history,
    check_compliance_coverage,
    get_dimension_coverage_trends,
)

# =============================================================================
# Ingestion Exports
# =============================================================================

from coverage_compass.services.ingestion import (
    normalize_frame,
    validate_columns,
    rows_from_frame,
    rows_from_records,
)


__all__ = [
    # Selection and aggregation
    'ALL_MARKETS',
    'ALL_PERIODS',
    'parse_period',
    'format_period',
    'previous_period',
    'latest_period',
    'select_markets',
    'filter_rows',
    'parse_numeric',
    'resolve_metric',
    'sum_metric',
    'aggregate_totals',
    # Gaps and scoring
    'classify_severity',
    'calculate_metric_gap',
    'WARNING_GAP_THRESHOLD',
    'CRITICAL_GAP_THRESHOLD',
    'calculate_metric_gaps',
    'calculate_discrepancies',
    'calculate_weighted_score',
    'get_quality_grade',
    'identify_data_gaps',
    'generate_recommendations',
    'calculate_data_quality_score',
    'calculate_market_discrepancy',
    'calculate_market_discrepancies',
    # Comprehensive quality
    'calculate_comprehensive_data_quality',
    'generate_market_analysis',
    'generate_metric_breakdown',
    'generate_preventive_actions',
    'generate_discrepancy_report',
    # Compliance
    'is_not_mapped',
    'get_compliance_status',
    'get_severity_level',
    'calculate_mom_change',
    'find_previous_compliance',
    'analyze_market_compliance',
    'analyze_compliance',
    # History and processing
    'HistoryUnavailableError',
    'HistoryStore',
    'InMemoryHistoryStore',
    'PostgresHistoryStore',
    'HistoryStores',
    'create_history_stores',
    'group_rows_by_unit',
    'load_previous_compliance',
    'process_compliance_history',
    'process_dimension_coverage_history',
    'check_compliance_coverage',
    'get_dimension_coverage_trends',
    # Ingestion
    'normalize_frame',
    'validate_columns',
    'rows_from_frame',
    'rows_from_records',
]
