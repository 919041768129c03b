"""
Parameterized SQL query module for the history snapshot tables.

Two tables back the HistoryStore adapter:
    - compliance_history: one row per (market_code, year, month)
    - dimension_coverage_history: one row per (market_code, year, month, dimension)

Each table's column list is declared once as (column, model field) pairs so
the adapter can translate between asyncpg records and the pydantic snapshot
models. All statements use asyncpg positional parameters ($1, $2, ...).
Filter columns are taken from the declared lists only, never from caller
strings.
"""

from typing import Dict, List, Sequence, Tuple


COMPLIANCE_TABLE: str = "compliance_history"
DIMENSION_COVERAGE_TABLE: str = "dimension_coverage_history"

# (column, snapshot field)
COMPLIANCE_COLUMNS: List[Tuple[str, str]] = [
    ("market_code", "market"),
    ("year", "year"),
    ("month", "month"),
    ("month_name", "monthName"),
    ("total_records", "totalRecords"),
    ("mapped_records", "mappedRecords"),
    ("unmapped_records", "unmappedRecords"),
    ("compliance_percentage", "compliancePct"),
    ("total_nvwr", "totalNvwr"),
    ("unmapped_nvwr", "unmappedNvwr"),
    ("unmapped_nvwr_percentage", "unmappedNvwrPct"),
    ("unmapped_by_field", "unmappedByField"),
]

DIMENSION_COVERAGE_COLUMNS: List[Tuple[str, str]] = [
    ("market_code", "market"),
    ("year", "year"),
    ("month", "month"),
    ("month_name", "monthName"),
    ("dimension", "dimension"),
    ("overall_coverage", "overallCoverage"),
    ("media_cost_gap", "mediaCostGap"),
    ("impressions_gap", "impressionsGap"),
    ("clicks_gap", "clicksGap"),
    ("iv_gap", "ivGap"),
    ("nvwr_gap", "nvwrGap"),
    ("missing_media_cost", "missingMediaCost"),
    ("missing_impressions", "missingImpressions"),
    ("missing_clicks", "missingClicks"),
    ("missing_iv", "missingIv"),
    ("missing_nvwr", "missingNvwr"),
    ("all_media_cost", "allMediaCost"),
    ("all_impressions", "allImpressions"),
    ("all_clicks", "allClicks"),
    ("all_iv", "allIv"),
    ("all_nvwr", "allNvwr"),
    ("dimension_media_cost", "dimensionMediaCost"),
    ("dimension_impressions", "dimensionImpressions"),
    ("dimension_clicks", "dimensionClicks"),
    ("dimension_iv", "dimensionIv"),
    ("dimension_nvwr", "dimensionNvwr"),
]

CONFLICT_KEYS: Dict[str, Tuple[str, ...]] = {
    COMPLIANCE_TABLE: ("market_code", "year", "month"),
    DIMENSION_COVERAGE_TABLE: ("market_code", "year", "month", "dimension"),
}

# Columns stored as JSONB; the parameter is cast explicitly
JSONB_COLUMNS: Tuple[str, ...] = ("unmapped_by_field",)


def _columns_for(table: str) -> List[Tuple[str, str]]:
    if table == COMPLIANCE_TABLE:
        return COMPLIANCE_COLUMNS
    if table == DIMENSION_COVERAGE_TABLE:
        return DIMENSION_COVERAGE_COLUMNS
    raise ValueError(f"Unknown history table: {table}")


def column_for_field(table: str, field: str) -> str:
    """
    Resolve a snapshot field name to its column.

    Raises:
        ValueError: If the field is not stored in the table.
    """
    for column, model_field in _columns_for(table):
        if model_field == field:
            return column
    raise ValueError(f"Field '{field}' is not a column of {table}")


def get_upsert_query(table: str) -> str:
    """
    Generate an INSERT ... ON CONFLICT DO UPDATE for one snapshot.

    Parameters follow the table's column list order; updated_at is set to
    NOW() on both insert and update.

    Example:
        >>> sql = get_upsert_query(COMPLIANCE_TABLE)
        >>> # await conn.execute(sql, "FR", 2025, 7, "July", ...)
    """
    columns = [column for column, _ in _columns_for(table)]
    conflict = CONFLICT_KEYS[table]

    placeholders = [
        f"${index}::jsonb" if column in JSONB_COLUMNS else f"${index}"
        for index, column in enumerate(columns, start=1)
    ]
    updates = ",\n        ".join(
        f"{column} = EXCLUDED.{column}" for column in columns if column not in conflict
    )

    return f"""
    INSERT INTO {table} (
        {", ".join(columns)}, updated_at
    ) VALUES (
        {", ".join(placeholders)}, NOW()
    )
    ON CONFLICT ({", ".join(conflict)}) DO UPDATE SET
        {updates},
        updated_at = NOW()
    """


def get_select_query(table: str, filter_fields: Sequence[str]) -> str:
    """
    Generate a SELECT of the most recently written snapshots.

    Args:
        table: History table name.
        filter_fields: Snapshot fields compared for equality, in parameter
            order. The LIMIT is the final parameter.

    Returns:
        SQL ordered by updated_at descending.
    """
    conditions = [
        f"{column_for_field(table, field)} = ${index}"
        for index, field in enumerate(filter_fields, start=1)
    ]
    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    limit_param = len(filter_fields) + 1

    return f"""
    SELECT *
    FROM {table}
    {where_clause}
    ORDER BY updated_at DESC, year DESC, month DESC
    LIMIT ${limit_param}
    """


def get_trend_query(table: str, with_dimension: bool) -> str:
    """
    Generate the newest-first trend query for one market.

    Parameters: $1 market code, then $2 dimension when `with_dimension`,
    then the LIMIT.
    """
    conditions = ["market_code = $1"]
    if with_dimension:
        conditions.append("dimension = $2")
    limit_param = len(conditions) + 1

    return f"""
    SELECT *
    FROM {table}
    WHERE {" AND ".join(conditions)}
    ORDER BY year DESC, month DESC
    LIMIT ${limit_param}
    """


def get_clear_query(table: str) -> str:
    _columns_for(table)
    return f"DELETE FROM {table}"
