"""AI analysis routes — proxy to the separate analysis service.

Learn: The API never talks to the language model directly. It packs
the patient's biomarkers into a tool request and lets AnalysisClient
call the three analysis tools concurrently. Upstream failures become
502s; a patient with nothing to analyse is a 400 before any network call.
"""

from fastapi import APIRouter, Depends, HTTPException

from biopulse.api.deps import (
    get_analysis_client,
    get_biomarker_service,
    get_patient_service,
)
from biopulse.schemas.analysis import BiomarkerData, PatientAnalysis, PatientAnalysisRequest
from biopulse.schemas.common import Envelope
from biopulse.services.analysis_client import AnalysisClient, AnalysisServiceError
from biopulse.services.biomarker_service import BiomarkerService
from biopulse.services.patient_service import PatientService

router = APIRouter()


@router.post("/patients/{patient_id}/analyze", response_model=Envelope[PatientAnalysis])
async def analyze_patient(
    patient_id: str,
    patients: PatientService = Depends(get_patient_service),
    biomarkers: BiomarkerService = Depends(get_biomarker_service),
    client: AnalysisClient = Depends(get_analysis_client),
):
    patient = await patients.get_patient(patient_id)
    if not patient:
        raise HTTPException(404, "Patient not found")

    rows = await biomarkers.list_biomarkers(patient_id)
    if not rows:
        raise HTTPException(400, "Patient has no biomarkers to analyze")

    request = PatientAnalysisRequest(
        patient_id=patient.id,
        patient_name=patient.name,
        biomarkers=[BiomarkerData.model_validate(b) for b in rows],
    )
    try:
        analysis = await client.comprehensive_analysis(request)
    except AnalysisServiceError as e:
        raise HTTPException(502, str(e))

    return Envelope(data=PatientAnalysis(
        patient_id=patient.id,
        patient_name=patient.name,
        analysis=analysis,
    ))


@router.get("/mcp/health")
async def analysis_service_health(client: AnalysisClient = Depends(get_analysis_client)):
    healthy = await client.check_health()
    return {
        "success": True,
        "mcpServiceHealthy": healthy,
        "mcpServerUrl": client.base_url,
    }
