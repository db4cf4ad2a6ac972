"""In-memory store — patients and their biomarkers.

Learn: There is no module-level database. main.create_app() builds one
InMemoryStore, seeds it, and hands it to the services that need it.
Every read returns a fresh list so callers hold a snapshot rather than
a live view that could change under them mid-iteration.
"""

from typing import Optional

from biopulse.db.models import Biomarker, BiomarkerCategory, Patient


class InMemoryStore:
    """Patients and biomarkers kept in insertion order."""

    def __init__(self):
        self._patients: dict[str, Patient] = {}
        self._biomarkers: list[Biomarker] = []

    # ─── Patients ───────────────────────────────────────

    def add_patient(self, patient: Patient) -> Patient:
        if patient.id in self._patients:
            raise ValueError(f"Patient {patient.id} already exists")
        self._patients[patient.id] = patient
        return patient

    def list_patients(self) -> list[Patient]:
        return list(self._patients.values())

    def get_patient(self, patient_id: str) -> Optional[Patient]:
        return self._patients.get(patient_id)

    # ─── Biomarkers ─────────────────────────────────────

    def add_biomarker(self, biomarker: Biomarker) -> Biomarker:
        if biomarker.patient_id not in self._patients:
            raise ValueError(f"Patient {biomarker.patient_id} not found")
        self._biomarkers.append(biomarker)
        return biomarker

    def list_biomarkers(
        self,
        patient_id: str,
        category: Optional[BiomarkerCategory] = None,
    ) -> list[Biomarker]:
        return [
            b for b in self._biomarkers
            if b.patient_id == patient_id
            and (category is None or b.category == category)
        ]
