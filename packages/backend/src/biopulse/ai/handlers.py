"""Tool handlers — prompt the model, parse its JSON, or fall back.

Learn: A tool call never fails because of the model. If no API key is
configured, the call errors, or the answer has no parseable JSON, the
handler returns rule-based commentary built from each biomarker's
status instead. The dashboard always gets the same shape back.
"""

import json
from typing import Any, Optional

import structlog

from biopulse.ai.client import GeminiClient
from biopulse.ai.tools import (
    ANALYZE_BIOMARKERS,
    GENERATE_HEALTH_SUMMARY,
    SUGGEST_MONITORING_PRIORITIES,
    TOOLS,
)
from biopulse.db.models import BiomarkerStatus
from biopulse.schemas.analysis import BiomarkerData, PatientAnalysisRequest

logger = structlog.get_logger()


def extract_json(text: str) -> Any:
    """Parse the first JSON object or array embedded in `text`.

    Handles bare JSON, ```json fenced blocks, and JSON surrounded by
    prose: decoding is attempted at each `{` or `[` in turn until one
    yields a complete value. Raises ValueError if none does.
    """
    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text, index)
            return value
        except json.JSONDecodeError:
            continue

    raise ValueError("No valid JSON found in response")


def _is_abnormal(biomarker: BiomarkerData) -> bool:
    return biomarker.status != BiomarkerStatus.NORMAL


class ToolHandlers:
    """Executes the three analysis tools for one patient at a time."""

    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client

    async def run(self, tool_name: str, patient: PatientAnalysisRequest) -> Any:
        handler = {
            ANALYZE_BIOMARKERS: self.analyze_biomarkers,
            SUGGEST_MONITORING_PRIORITIES: self.suggest_monitoring_priorities,
            GENERATE_HEALTH_SUMMARY: self.generate_health_summary,
        }.get(tool_name)
        if handler is None:
            raise KeyError(tool_name)
        return await handler(patient)

    async def _ask(self, tool_name: str, patient: PatientAnalysisRequest) -> Any:
        if self.client is None:
            raise RuntimeError("AI client not configured")
        tool = TOOLS[tool_name]
        prompt = tool.prompt.format(patient_data=self._patient_json(patient))
        text = await self.client.generate(prompt, tool.response_schema)
        return extract_json(text)

    @staticmethod
    def _patient_json(patient: PatientAnalysisRequest) -> str:
        return json.dumps({
            "id": patient.patient_id,
            "name": patient.patient_name,
            "age": patient.age or 0,
            "gender": patient.gender or "Unknown",
            "biomarkers": [
                b.model_dump(mode="json", by_alias=True, exclude_none=True)
                for b in patient.biomarkers
            ],
        }, indent=2)

    # ─── Tools ──────────────────────────────────────────

    async def analyze_biomarkers(self, patient: PatientAnalysisRequest) -> list:
        try:
            parsed = await self._ask(ANALYZE_BIOMARKERS, patient)
            if isinstance(parsed, dict):
                return parsed.get("analyses") or []
            return parsed if isinstance(parsed, list) else []
        except Exception as e:
            logger.warning("biopulse.ai.fallback", tool=ANALYZE_BIOMARKERS, error=str(e))
            return self.fallback_analysis(patient)

    async def suggest_monitoring_priorities(self, patient: PatientAnalysisRequest) -> list:
        try:
            parsed = await self._ask(SUGGEST_MONITORING_PRIORITIES, patient)
            if isinstance(parsed, dict):
                parsed = parsed.get("priorities") or []
            return parsed or []
        except Exception as e:
            logger.warning(
                "biopulse.ai.fallback", tool=SUGGEST_MONITORING_PRIORITIES, error=str(e)
            )
            return self.fallback_priorities(patient)

    async def generate_health_summary(self, patient: PatientAnalysisRequest) -> dict:
        try:
            parsed = await self._ask(GENERATE_HEALTH_SUMMARY, patient)
            if not isinstance(parsed, dict):
                raise ValueError("Health summary must be a JSON object")
            return {
                "patientId": patient.patient_id,
                "patientName": patient.patient_name,
                **parsed,
            }
        except Exception as e:
            logger.warning("biopulse.ai.fallback", tool=GENERATE_HEALTH_SUMMARY, error=str(e))
            return self.fallback_health_summary(patient)

    # ─── Fallbacks ──────────────────────────────────────

    @staticmethod
    def fallback_analysis(patient: PatientAnalysisRequest) -> list[dict]:
        analyses = []
        for bm in patient.biomarkers:
            status = bm.status.value
            rng = bm.reference_range
            range_str = f"{rng.min:g}-{rng.max:g}" if rng else "unknown"
            if _is_abnormal(bm):
                advice = f"Consider discussing {bm.name} with your healthcare provider"
            else:
                advice = f"Continue monitoring {bm.name} regularly"
            analyses.append({
                "biomarkerId": bm.id,
                "name": bm.name,
                "value": bm.value,
                "status": status,
                "riskLevel": "moderate" if _is_abnormal(bm) else "low",
                "explanation": (
                    f"{bm.name} is currently {status}. "
                    f"Reference range: {range_str} {bm.unit}"
                ),
                "recommendations": [advice],
            })
        return analyses

    @staticmethod
    def fallback_priorities(patient: PatientAnalysisRequest) -> list[dict]:
        return [
            {
                "biomarkerId": bm.id,
                "name": bm.name,
                "priority": "high",
                "reason": f"{bm.name} is {bm.status.value} and requires attention",
                "actionItems": [
                    f"Monitor {bm.name} weekly",
                    "Schedule follow-up appointment if not improving",
                ],
            }
            for bm in patient.biomarkers
            if _is_abnormal(bm)
        ]

    @staticmethod
    def fallback_health_summary(patient: PatientAnalysisRequest) -> dict:
        abnormal = [bm for bm in patient.biomarkers if _is_abnormal(bm)]
        if len(abnormal) > 3:
            risk = "high"
        elif abnormal:
            risk = "moderate"
        else:
            risk = "low"

        return {
            "patientId": patient.patient_id,
            "patientName": patient.patient_name,
            "overallRiskLevel": risk,
            "keyFindings": [
                f"Patient has {len(abnormal)} abnormal biomarkers",
                f"Age: {patient.age or 0}, Gender: {patient.gender or 'Unknown'}",
            ],
            "concerningBiomarkers": [bm.name for bm in abnormal],
            "recommendations": [
                "Regular monitoring recommended",
                "Discuss results with healthcare provider",
            ],
            "nextSteps": [
                "Schedule follow-up appointment",
                "Consider lifestyle modifications if appropriate",
            ],
        }
