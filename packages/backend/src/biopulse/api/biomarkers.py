"""Biomarker API routes.

Learn: `category` is taken as a plain string and checked by hand so an
unknown value is a 400 with the list of valid categories, rather than
FastAPI's generic 422 enum error.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from biopulse.api.deps import get_biomarker_service, get_patient_service
from biopulse.db.models import BiomarkerCategory
from biopulse.schemas.biomarker import BiomarkerRead, PatientBiomarkers
from biopulse.schemas.common import Envelope
from biopulse.services.biomarker_service import BiomarkerService
from biopulse.services.patient_service import PatientService

router = APIRouter()

_VALID_CATEGORIES = [c.value for c in BiomarkerCategory]


@router.get("/patients/{patient_id}/biomarkers", response_model=Envelope[PatientBiomarkers])
async def list_biomarkers(
    patient_id: str,
    category: Optional[str] = Query(None),
    patients: PatientService = Depends(get_patient_service),
    biomarkers: BiomarkerService = Depends(get_biomarker_service),
):
    """A patient's biomarkers, optionally filtered by category."""
    patient = await patients.get_patient(patient_id)
    if not patient:
        raise HTTPException(404, "Patient not found")

    selected: Optional[BiomarkerCategory] = None
    if category:
        if category not in _VALID_CATEGORIES:
            raise HTTPException(
                400,
                f"Invalid category. Must be one of: {', '.join(_VALID_CATEGORIES)}",
            )
        selected = BiomarkerCategory(category)

    rows = await biomarkers.list_biomarkers(patient_id, selected)
    return Envelope(data=PatientBiomarkers(
        patient_id=patient.id,
        patient_name=patient.name,
        category=category or "all",
        biomarkers=[BiomarkerRead.model_validate(b) for b in rows],
    ))
