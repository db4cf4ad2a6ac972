"""API route aggregation.

All routers registered here get mounted in main.py under /api.
No authentication: the demo data is synthetic and every route is open.
"""

from fastapi import APIRouter

from biopulse.api.analysis import router as analysis_router
from biopulse.api.biomarkers import router as biomarkers_router
from biopulse.api.health import router as health_router
from biopulse.api.patients import router as patients_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(patients_router, tags=["patients"])
api_router.include_router(biomarkers_router, tags=["biomarkers"])
api_router.include_router(analysis_router, tags=["analysis"])
