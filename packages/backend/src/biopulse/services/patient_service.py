"""Patient service — read access to seeded patients.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the store. The store is
passed in, so a test can hand the service its own seeded store.
"""

from typing import Optional

from biopulse.db.models import Patient
from biopulse.db.store import InMemoryStore


class PatientService:
    """Business logic for patients."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def list_patients(self) -> list[Patient]:
        return self.store.list_patients()

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        return self.store.get_patient(patient_id)
