"""Pydantic schemas for AI analysis requests and responses.

Learn: The AI service speaks snake_case for tool arguments
(patient_id, patient_name) but camelCase inside each biomarker
(referenceRange), matching the tool input schemas it publishes.
These models pin that mixed shape down in one place.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from biopulse.db.models import BiomarkerCategory, BiomarkerStatus
from biopulse.schemas.biomarker import ReferenceRangeRead
from biopulse.schemas.common import CamelModel


class BiomarkerData(CamelModel):
    id: str
    name: str
    value: float
    unit: str
    status: BiomarkerStatus
    category: Optional[BiomarkerCategory] = None
    reference_range: Optional[ReferenceRangeRead] = None


class PatientAnalysisRequest(BaseModel):
    """Tool arguments shared by all three analysis tools."""

    patient_id: str = Field(..., min_length=1)
    patient_name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    biomarkers: list[BiomarkerData] = Field(default_factory=list)


class ComprehensiveAnalysis(CamelModel):
    analyze_biomarkers: Any
    suggest_monitoring_priorities: Any
    generate_health_summary: Any


class PatientAnalysis(CamelModel):
    patient_id: str
    patient_name: str
    analysis: ComprehensiveAnalysis


class ToolCall(BaseModel):
    """Body of POST /tool on the AI service."""

    tool_name: str = Field(..., alias="toolName", min_length=1)
    args: PatientAnalysisRequest
