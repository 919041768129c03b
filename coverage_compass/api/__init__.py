"""
API package initialization.

This package contains FastAPI router modules for Coverage Compass:
- quality: comprehensive quality and discrepancy reports
- compliance: mapping compliance analysis with MoM
- history: snapshot processing, reads and clearing
"""

from fastapi import APIRouter

from coverage_compass.api.quality import router as quality_router
from coverage_compass.api.compliance import router as compliance_router
from coverage_compass.api.history import router as history_router

# Create main API router
api_router = APIRouter()

api_router.include_router(quality_router, prefix="/quality", tags=["quality"])
api_router.include_router(compliance_router, prefix="/compliance", tags=["compliance"])
api_router.include_router(history_router, prefix="/history", tags=["history"])

__all__ = [
    "api_router",
    "quality_router",
    "compliance_router",
    "history_router",
]
