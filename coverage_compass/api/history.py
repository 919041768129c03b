"""
FastAPI router module for history snapshot endpoints.

Key Endpoints:
- POST /history/compliance/process: store compliance snapshots per unit
- POST /history/compliance/coverage: units still lacking a snapshot
- POST /history/dimension-coverage/process: store coverage snapshots per unit
- GET /history/compliance: stored compliance snapshots
- GET /history/dimension-coverage: stored dimension coverage snapshots
- GET /history/dimension-coverage/trends: newest-first coverage of one market
- DELETE /history/{kind}: clear one history table

Processing endpoints always return 200 with per-unit results; a unit whose
history write failed is reported with success=false. Read endpoints return
503 when the store is unavailable.
"""

import logging
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from coverage_compass.core.dependencies import HistoryStoresDep, SettingsDep
from coverage_compass.models.enums import Dimension, HistoryKind
from coverage_compass.models.schemas import (
    ComplianceSnapshot,
    CoverageCheck,
    DimensionCoverageSnapshot,
    ProcessingResult,
    ProcessRequest,
)
from coverage_compass.services.history import HistoryUnavailableError
from coverage_compass.services.processing import (
    check_compliance_coverage,
    get_dimension_coverage_trends,
    process_compliance_history,
    process_dimension_coverage_history,
)


logger = logging.getLogger(__name__)

router = APIRouter()

MAX_QUERY_LIMIT = 1000
MAX_TREND_MONTHS = 60


def _unavailable(e: HistoryUnavailableError) -> HTTPException:
    logger.warning(f"History store unavailable: {e}")
    return HTTPException(status_code=503, detail="History store unavailable")


def _filters(**values: Any) -> Dict[str, Any]:
    return {name: value for name, value in values.items() if value is not None}


# =============================================================================
# Processing Endpoints
# =============================================================================

@router.post("/compliance/process", response_model=ProcessingResult)
async def process_compliance(request: ProcessRequest, stores: HistoryStoresDep) -> ProcessingResult:
    """Analyze and store compliance for every (market, year, month) in the rows."""
    try:
        return await process_compliance_history(request.rows, stores.compliance)
    except Exception as e:
        logger.error(f"Error processing compliance history: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process compliance history")


@router.post("/compliance/coverage", response_model=CoverageCheck)
async def compliance_coverage(request: ProcessRequest, stores: HistoryStoresDep) -> CoverageCheck:
    """Report which units of the rows have no stored compliance snapshot."""
    try:
        return await check_compliance_coverage(request.rows, stores.compliance)
    except HistoryUnavailableError as e:
        raise _unavailable(e)


@router.post("/dimension-coverage/process", response_model=ProcessingResult)
async def process_dimension_coverage(request: ProcessRequest, stores: HistoryStoresDep) -> ProcessingResult:
    """Score and store dimension coverage for every unit in the rows."""
    try:
        return await process_dimension_coverage_history(request.rows, stores.dimension_coverage)
    except Exception as e:
        logger.error(f"Error processing dimension coverage history: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process dimension coverage history")


# =============================================================================
# Read Endpoints
# =============================================================================

@router.get("/compliance", response_model=List[ComplianceSnapshot])
async def list_compliance_history(
    stores: HistoryStoresDep,
    settings: SettingsDep,
    market: Annotated[Optional[str], Query(description="Market code")] = None,
    year: Annotated[Optional[int], Query(ge=1900, le=9999)] = None,
    month: Annotated[Optional[int], Query(ge=1, le=12)] = None,
    limit: Annotated[Optional[int], Query(ge=1, le=MAX_QUERY_LIMIT)] = None,
) -> List[ComplianceSnapshot]:
    """
    List stored compliance snapshots, most recently written first.

    Example Request:
        GET /history/compliance?market=FR&limit=12
    """
    filters = _filters(market=market.strip().upper() if market else None, year=year, month=month)
    try:
        return await stores.compliance.query(filters, limit=limit or settings.history_query_limit)
    except HistoryUnavailableError as e:
        raise _unavailable(e)


@router.get("/dimension-coverage", response_model=List[DimensionCoverageSnapshot])
async def list_dimension_coverage_history(
    stores: HistoryStoresDep,
    settings: SettingsDep,
    market: Annotated[Optional[str], Query(description="Market code")] = None,
    dimension: Annotated[Optional[Dimension], Query(description="Sliced dimension")] = None,
    year: Annotated[Optional[int], Query(ge=1900, le=9999)] = None,
    month: Annotated[Optional[int], Query(ge=1, le=12)] = None,
    limit: Annotated[Optional[int], Query(ge=1, le=MAX_QUERY_LIMIT)] = None,
) -> List[DimensionCoverageSnapshot]:
    """List stored dimension coverage snapshots, most recently written first."""
    filters = _filters(
        market=market.strip().upper() if market else None,
        dimension=dimension.value if dimension else None,
        year=year,
        month=month,
    )
    try:
        return await stores.dimension_coverage.query(filters, limit=limit or settings.history_query_limit)
    except HistoryUnavailableError as e:
        raise _unavailable(e)


@router.get("/dimension-coverage/trends", response_model=List[DimensionCoverageSnapshot])
async def dimension_coverage_trends(
    stores: HistoryStoresDep,
    settings: SettingsDep,
    market: Annotated[str, Query(min_length=1, description="Market code")],
    dimension: Annotated[Optional[Dimension], Query(description="Sliced dimension")] = None,
    months: Annotated[Optional[int], Query(ge=1, le=MAX_TREND_MONTHS)] = None,
) -> List[DimensionCoverageSnapshot]:
    """
    Newest-first coverage snapshots of one market.

    Example Request:
        GET /history/dimension-coverage/trends?market=FR&dimension=Model&months=6
    """
    try:
        return await get_dimension_coverage_trends(
            stores.dimension_coverage,
            market,
            dimension,
            months=months or settings.trend_lookback_months,
        )
    except HistoryUnavailableError as e:
        raise _unavailable(e)


@router.delete("/{kind}", response_model=dict)
async def clear_history(kind: HistoryKind, stores: HistoryStoresDep) -> dict:
    """
    Delete every snapshot of one history kind.

    Example Request:
        DELETE /history/compliance

    Example Response:
        {"kind": "compliance", "deleted": 24}
    """
    try:
        deleted = await stores.for_kind(kind).clear()
    except HistoryUnavailableError as e:
        raise _unavailable(e)

    logger.info(f"Cleared {deleted} {kind.value} snapshots")
    return {"kind": kind.value, "deleted": deleted}
