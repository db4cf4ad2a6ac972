"""Pydantic schemas for biomarkers."""

from biopulse.db.models import BiomarkerCategory, BiomarkerStatus
from biopulse.schemas.common import CamelModel


class ReferenceRangeRead(CamelModel):
    min: float
    max: float


class BiomarkerRead(CamelModel):
    id: str
    patient_id: str
    name: str
    value: float
    unit: str
    category: BiomarkerCategory
    reference_range: ReferenceRangeRead
    measured_at: str
    status: BiomarkerStatus


class PatientBiomarkers(CamelModel):
    """A patient's biomarkers, optionally narrowed to one category."""

    patient_id: str
    patient_name: str
    category: str  # a BiomarkerCategory value, or "all"
    biomarkers: list[BiomarkerRead]
