"""Pydantic schemas for patients."""

from biopulse.schemas.common import CamelModel


class PatientRead(CamelModel):
    id: str
    name: str
    date_of_birth: str
    last_visit: str
