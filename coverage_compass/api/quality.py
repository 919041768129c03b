"""
FastAPI router module for data-quality endpoints.

Key Endpoints:
- POST /quality/report: comprehensive market x dimension quality report
- POST /quality/discrepancy-report: actionable discrepancy summary

Both endpoints take already-parsed rows in the request body; parsing the
Datorama extracts is the ingestion adapter's job. Empty selections are not
errors: the report comes back with an `error` marker and score 0.
"""

import logging

from fastapi import APIRouter, HTTPException

from coverage_compass.models.schemas import (
    ComprehensiveQualityReport,
    DiscrepancyReport,
    QualityReportRequest,
)
from coverage_compass.services.quality import (
    calculate_comprehensive_data_quality,
    generate_discrepancy_report,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/report", response_model=ComprehensiveQualityReport)
async def create_quality_report(request: QualityReportRequest) -> ComprehensiveQualityReport:
    """
    Score every sliced dimension of the selected market and period.

    Example Request:
        POST /quality/report
        {"rows": [...], "market": "FR", "period": "2025-07"}

    Raises:
        HTTPException 500: If report generation fails unexpectedly.
    """
    try:
        return calculate_comprehensive_data_quality(request.rows, request.market, request.period)
    except Exception as e:
        logger.error(f"Error generating quality report: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate quality report")


@router.post("/discrepancy-report", response_model=DiscrepancyReport)
async def create_discrepancy_report(request: QualityReportRequest) -> DiscrepancyReport:
    """
    Summarize missing spend, per-metric coverage and remediation actions.

    Raises:
        HTTPException 500: If report generation fails unexpectedly.
    """
    try:
        report = calculate_comprehensive_data_quality(request.rows, request.market, request.period)
        return generate_discrepancy_report(report)
    except Exception as e:
        logger.error(f"Error generating discrepancy report: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate discrepancy report")
