"""Record types held by the in-memory store.

Learn: Records are frozen dataclasses. The store hands out references
to them freely because nobody can mutate a record in place; the live
broadcaster computes perturbed values and emits them without writing
anything back.
"""

from dataclasses import dataclass
from enum import Enum


class BiomarkerCategory(str, Enum):
    METABOLIC = "metabolic"
    CARDIOVASCULAR = "cardiovascular"
    HORMONAL = "hormonal"


class BiomarkerStatus(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    LOW = "low"


@dataclass(frozen=True)
class ReferenceRange:
    min: float
    max: float

    def classify(self, value: float) -> BiomarkerStatus:
        """Status of a value relative to this range (bounds are normal)."""
        if value < self.min:
            return BiomarkerStatus.LOW
        if value > self.max:
            return BiomarkerStatus.HIGH
        return BiomarkerStatus.NORMAL


@dataclass(frozen=True)
class Patient:
    id: str
    name: str
    date_of_birth: str  # ISO 8601
    last_visit: str  # ISO 8601


@dataclass(frozen=True)
class Biomarker:
    id: str
    patient_id: str
    name: str
    value: float
    unit: str
    category: BiomarkerCategory
    reference_range: ReferenceRange
    measured_at: str  # ISO 8601
    status: BiomarkerStatus
