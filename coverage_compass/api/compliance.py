"""
FastAPI router module for mapping-compliance endpoints.

Key Endpoints:
- POST /compliance/analyze: per-market compliance with month-over-month change

The previous month's snapshots are read from the compliance history store.
When the store is unavailable the analysis still runs; every market's
momChange is then null and the response is otherwise complete.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException

from coverage_compass.core.dependencies import HistoryStoresDep
from coverage_compass.models.schemas import ComplianceReport, ComplianceRequest, ComplianceSnapshot
from coverage_compass.services.compliance import analyze_compliance
from coverage_compass.services.history import HistoryStore, HistoryUnavailableError
from coverage_compass.services.selection import latest_period, parse_period, previous_period


logger = logging.getLogger(__name__)

router = APIRouter()


async def _load_prior_snapshots(store: HistoryStore, request: ComplianceRequest) -> List[ComplianceSnapshot]:
    try:
        period = parse_period(request.period) if request.period else latest_period(request.rows)
    except ValueError:
        # analyze_compliance reports the invalid period itself
        return []
    if period is None:
        return []

    prior_year, prior_month = previous_period(*period)
    try:
        return await store.query({"year": prior_year, "month": prior_month}, limit=1000)
    except HistoryUnavailableError as e:
        logger.warning(f"Compliance history unavailable, MoM disabled: {e}")
        return []


@router.post("/analyze", response_model=ComplianceReport)
async def analyze(request: ComplianceRequest, stores: HistoryStoresDep) -> ComplianceReport:
    """
    Analyze mapping compliance of the requested (or latest) period.

    Example Request:
        POST /compliance/analyze
        {"rows": [...], "period": "2025-07"}

    Raises:
        HTTPException 500: If the analysis fails unexpectedly.
    """
    try:
        history = await _load_prior_snapshots(stores.compliance, request)
        return analyze_compliance(request.rows, history, period=request.period)
    except Exception as e:
        logger.error(f"Error analyzing compliance: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to analyze compliance")
