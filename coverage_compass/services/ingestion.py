"""
Row Ingestion Service

Converts Datorama extracts already parsed upstream (record lists, DataFrames) into
validated PerformanceRow models.

Steps:
- Rename extract headers ('Media Cost', 'Channel Type', 'Country', ...) to the
  camelCase row contract
- Validate the identity columns (market, year, month, dimension)
- Coerce metric columns with pd.to_numeric(errors='coerce').fillna(0)
- Apply upload metadata (market, period, dimension) supplied by the caller;
  market codes are never parsed out of file names
- Build one PerformanceRow per record; invalid records are reported as
  ValidationErrors with their 1-based row number and skipped
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from coverage_compass.models import PerformanceRow, ValidationError
from coverage_compass.models.schemas import CATEGORY_FIELDS, METRIC_FIELDS


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS - Column Contract
# =============================================================================

REQUIRED_COLUMNS: List[str] = ["market", "year", "month", "dimension"]

# Lower-cased, space-free header -> row field
COLUMN_ALIASES: Dict[str, str] = {
    "market": "market",
    "marketcode": "market",
    "market_code": "market",
    "country": "market",
    "year": "year",
    "month": "month",
    "dimension": "dimension",
    "model": "model",
    "phase": "phase",
    "channeltype": "channelType",
    "channel_type": "channelType",
    "channelname": "channelName",
    "channel_name": "channelName",
    "campaigntype": "campaignType",
    "campaign_type": "campaignType",
    "mediacost": "mediaCost",
    "media_cost": "mediaCost",
    "impressions": "impressions",
    "clicks": "clicks",
    "iv": "iv",
    "nvwr": "nvwr",
}


def _canonical_column(column: Any) -> str:
    key = str(column).strip().lower().replace(" ", "")
    return COLUMN_ALIASES.get(key, str(column).strip())


# =============================================================================
# VALIDATION AND NORMALIZATION
# =============================================================================

def normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename extract headers to the row contract and coerce metric columns.

    Missing metric columns are added as 0 so every row carries all five
    metrics.
    """
    df_normalized = df.copy()
    df_normalized.columns = [_canonical_column(column) for column in df_normalized.columns]
    df_normalized = df_normalized.loc[:, ~df_normalized.columns.duplicated()]

    for col in METRIC_FIELDS:
        if col in df_normalized.columns:
            cleaned = df_normalized[col].astype(str).str.replace(",", "", regex=False).str.strip()
            df_normalized[col] = pd.to_numeric(cleaned, errors="coerce").fillna(0)
        else:
            df_normalized[col] = 0.0

    return df_normalized


def validate_columns(df: pd.DataFrame) -> List[ValidationError]:
    """
    Validate that the identity columns are present.

    Args:
        df: DataFrame with raw or normalized headers.

    Returns:
        List of ValidationError objects for any missing columns.
    """
    errors: List[ValidationError] = []
    present = {_canonical_column(column) for column in df.columns}

    for col in REQUIRED_COLUMNS:
        if col not in present:
            errors.append(ValidationError(
                field=col,
                message=f"Required column '{col}' is missing",
                row_number=None,
            ))

    return errors


def _apply_metadata(df: pd.DataFrame, metadata: Mapping[str, Any]) -> pd.DataFrame:
    df_result = df.copy()
    for field, value in metadata.items():
        if value is None:
            continue
        # Upload metadata replaces every header aliasing the field (Country, Market Code...)
        aliased = [column for column in df_result.columns if _canonical_column(column) == field]
        df_result = df_result.drop(columns=aliased)
        df_result[field] = value
    return df_result


def _clean_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for field, value in record.items():
        if field in CATEGORY_FIELDS or field in METRIC_FIELDS:
            cleaned[field] = value
        elif pd.isna(value):
            cleaned[field] = None
        else:
            cleaned[field] = value
    return cleaned


# =============================================================================
# INGESTION FUNCTIONS
# =============================================================================

def rows_from_frame(
    df: pd.DataFrame,
    market: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    dimension: Optional[str] = None,
) -> Tuple[List[PerformanceRow], List[ValidationError]]:
    """
    Convert a parsed extract into PerformanceRows.

    Args:
        df: Parsed extract.
        market: Market code for every row (upload metadata); overrides the
            market column when given.
        year: Year for every row; overrides the year column when given.
        month: Month for every row; overrides the month column when given.
        dimension: Dimension of the extract; overrides the dimension column
            when given.

    Returns:
        Tuple of (valid rows, validation errors). Missing identity columns
        return no rows.
    """
    metadata = {"market": market, "year": year, "month": month, "dimension": dimension}
    df = _apply_metadata(df, metadata)

    errors = validate_columns(df)
    if errors:
        return [], errors

    df = normalize_frame(df)
    known_fields = set(PerformanceRow.model_fields)
    df = df[[col for col in df.columns if col in known_fields]]

    rows: List[PerformanceRow] = []
    for index, record in enumerate(df.to_dict(orient="records"), start=1):
        try:
            rows.append(PerformanceRow(**_clean_record(record)))
        except PydanticValidationError as e:
            for detail in e.errors():
                location = ".".join(str(part) for part in detail["loc"]) or "row"
                errors.append(ValidationError(field=location, message=detail["msg"], row_number=index))

    if errors:
        logger.warning(f"Skipped {len({error.row_number for error in errors})} invalid rows of {len(df)}")
    logger.info(f"Ingested {len(rows)} rows")

    return rows, errors


def rows_from_records(
    records: Iterable[Mapping[str, Any]],
    **metadata: Any,
) -> Tuple[List[PerformanceRow], List[ValidationError]]:
    """Convert already-parsed records (dicts) into PerformanceRows."""
    records = list(records)
    if not records:
        return [], []
    return rows_from_frame(pd.DataFrame.from_records(records), **metadata)

