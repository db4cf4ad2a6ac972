"""In-memory patient and biomarker store."""

from biopulse.db.models import Biomarker, BiomarkerCategory, BiomarkerStatus, Patient, ReferenceRange
from biopulse.db.seed import seed_store
from biopulse.db.store import InMemoryStore

__all__ = [
    "Biomarker",
    "BiomarkerCategory",
    "BiomarkerStatus",
    "InMemoryStore",
    "Patient",
    "ReferenceRange",
    "seed_store",
]
