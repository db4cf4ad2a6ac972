"""Patient API routes."""

from fastapi import APIRouter, Depends, HTTPException

from biopulse.api.deps import get_patient_service
from biopulse.schemas.common import Envelope
from biopulse.schemas.patient import PatientRead
from biopulse.services.patient_service import PatientService

router = APIRouter()


@router.get("/patients", response_model=Envelope[list[PatientRead]])
async def list_patients(svc: PatientService = Depends(get_patient_service)):
    patients = await svc.list_patients()
    return Envelope(data=[PatientRead.model_validate(p) for p in patients])


@router.get("/patients/{patient_id}", response_model=Envelope[PatientRead])
async def get_patient(patient_id: str, svc: PatientService = Depends(get_patient_service)):
    patient = await svc.get_patient(patient_id)
    if not patient:
        raise HTTPException(404, "Patient not found")
    return Envelope(data=PatientRead.model_validate(patient))
