"""Demo seed data — five patients, fifteen biomarkers each.

Learn: The random source is a parameter, not the `random` module.
Passing random.Random(seed) makes the seeded dataset reproducible
(BIOPULSE_RANDOM_SEED), which tests rely on.
"""

import random
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, NamedTuple

from biopulse.db.models import (
    Biomarker,
    BiomarkerCategory,
    Patient,
    ReferenceRange,
)
from biopulse.db.store import InMemoryStore


class BiomarkerTemplate(NamedTuple):
    name: str
    unit: str
    min: float
    max: float


TEMPLATES: dict[BiomarkerCategory, list[BiomarkerTemplate]] = {
    BiomarkerCategory.METABOLIC: [
        BiomarkerTemplate("Glucose", "mg/dL", 70, 100),
        BiomarkerTemplate("Triglycerides", "mg/dL", 0, 150),
        BiomarkerTemplate("Total Cholesterol", "mg/dL", 0, 200),
        BiomarkerTemplate("HbA1c", "%", 0, 5.7),
        BiomarkerTemplate("Insulin", "mIU/L", 2, 25),
    ],
    BiomarkerCategory.CARDIOVASCULAR: [
        BiomarkerTemplate("Systolic BP", "mmHg", 90, 120),
        BiomarkerTemplate("Diastolic BP", "mmHg", 60, 80),
        BiomarkerTemplate("HDL Cholesterol", "mg/dL", 40, 200),
        BiomarkerTemplate("LDL Cholesterol", "mg/dL", 0, 100),
        BiomarkerTemplate("Heart Rate", "bpm", 60, 100),
    ],
    BiomarkerCategory.HORMONAL: [
        BiomarkerTemplate("Testosterone", "ng/dL", 300, 1000),
        BiomarkerTemplate("Cortisol", "μg/dL", 10, 20),
        BiomarkerTemplate("TSH", "mIU/L", 0.4, 4),
        BiomarkerTemplate("Estrogen", "pg/mL", 10, 500),
        BiomarkerTemplate("Progesterone", "ng/mL", 0.1, 28),
    ],
}


def _iso(d: date) -> str:
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc).isoformat()


def _day_of_2024(rng: random.Random) -> str:
    return _iso(date(2024, 1, 1) + timedelta(days=rng.randrange(365)))


def _uuid(rng: random.Random) -> str:
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


def seed_store(
    store: InMemoryStore,
    rng: random.Random,
    patient_names: Iterable[str],
) -> InMemoryStore:
    """Populate `store` with one patient per name plus their biomarkers."""
    for name in patient_names:
        patient = store.add_patient(Patient(
            id=_uuid(rng),
            name=name,
            date_of_birth=_iso(date(1970 + rng.randrange(30), 1, 1)),
            last_visit=_day_of_2024(rng),
        ))

        for category, templates in TEMPLATES.items():
            for template in templates:
                value = round(rng.uniform(template.min, template.max), 2)
                reference_range = ReferenceRange(min=template.min, max=template.max)
                store.add_biomarker(Biomarker(
                    id=_uuid(rng),
                    patient_id=patient.id,
                    name=template.name,
                    value=value,
                    unit=template.unit,
                    category=category,
                    reference_range=reference_range,
                    measured_at=_day_of_2024(rng),
                    status=reference_range.classify(value),
                ))

    return store
