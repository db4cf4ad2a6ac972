"""Biomarker service — per-patient biomarker lookups.

Also the metric source for live updates: the broadcaster calls
list_metrics_for_topic() on every tick and gets a fresh snapshot.
"""

from typing import Optional

from biopulse.db.models import Biomarker, BiomarkerCategory
from biopulse.db.store import InMemoryStore


class BiomarkerService:
    """Business logic for biomarkers."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def list_biomarkers(
        self,
        patient_id: str,
        category: Optional[BiomarkerCategory] = None,
    ) -> list[Biomarker]:
        return self.store.list_biomarkers(patient_id, category)

    async def list_metrics_for_topic(self, topic_id: str) -> list[Biomarker]:
        """All biomarkers for a patient; empty for unknown patients."""
        return self.store.list_biomarkers(topic_id)
