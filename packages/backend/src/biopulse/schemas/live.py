"""Wire schemas for live biomarker updates.

Learn: An update event carries only the biomarkers perturbed on that
tick, never the patient's full list. Clients merge by `id`.
"""

from biopulse.schemas.common import CamelModel


class BiomarkerUpdate(CamelModel):
    id: str
    name: str
    value: float
    timestamp: str  # ISO 8601
    unit: str


class BiomarkerUpdateEvent(CamelModel):
    patient_id: str
    updates: list[BiomarkerUpdate]
    timestamp: str  # ISO 8601
