"""
SQL query module for the Coverage Compass backend.

Provides parameterized asyncpg queries for the history snapshot tables
(history_queries). The DDL for those tables lives in sql/migrations/.

Example usage:
    from coverage_compass.sql import COMPLIANCE_TABLE, get_upsert_query

    sql = get_upsert_query(COMPLIANCE_TABLE)
"""

# =============================================================================
# HISTORY QUERIES - compliance_history and dimension_coverage_history
# =============================================================================

from coverage_compass.sql.history_queries import (
    COMPLIANCE_TABLE,
    DIMENSION_COVERAGE_TABLE,
    COMPLIANCE_COLUMNS,
    DIMENSION_COVERAGE_COLUMNS,
    CONFLICT_KEYS,
    JSONB_COLUMNS,
    column_for_field,
    get_upsert_query,
    get_select_query,
    get_trend_query,
    get_clear_query,
)


__all__ = [
    # Tables and column maps
    'COMPLIANCE_TABLE',
    'DIMENSION_COVERAGE_TABLE',
    'COMPLIANCE_COLUMNS',
    'DIMENSION_COVERAGE_COLUMNS',
    'CONFLICT_KEYS',
    'JSONB_COLUMNS',
    # Query generators
    'column_for_field',
    'get_upsert_query',
    'get_select_query',
    'get_trend_query',
    'get_clear_query',
]
