"""Tool definitions, prompts, and response schemas.

Learn: Three tools share one input shape (a patient plus biomarkers).
Each tool pairs a prompt template with a response schema; the schema
goes to the model as responseSchema so it answers in JSON mode.
Response schema types use the Generative Language API's uppercase
type names.
"""

from typing import NamedTuple

ANALYZE_BIOMARKERS = "analyze_biomarkers"
SUGGEST_MONITORING_PRIORITIES = "suggest_monitoring_priorities"
GENERATE_HEALTH_SUMMARY = "generate_health_summary"


class ToolDefinition(NamedTuple):
    name: str
    description: str
    prompt: str
    response_schema: dict


_PATIENT_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "patient_id": {"type": "string", "description": "The unique identifier of the patient"},
        "patient_name": {"type": "string", "description": "The name of the patient"},
        "age": {"type": "number", "description": "Patient age in years"},
        "gender": {"type": "string", "description": "Patient gender (M/F)"},
        "biomarkers": {
            "type": "array",
            "description": "Array of biomarker measurements",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "value": {"type": "number"},
                    "unit": {"type": "string"},
                    "status": {"type": "string", "enum": ["normal", "high", "low"]},
                    "category": {
                        "type": "string",
                        "enum": ["metabolic", "cardiovascular", "hormonal"],
                    },
                    "referenceRange": {
                        "type": "object",
                        "properties": {
                            "min": {"type": "number"},
                            "max": {"type": "number"},
                        },
                    },
                },
                "required": ["id", "name", "value", "unit", "status"],
            },
        },
    },
    "required": ["patient_id", "patient_name", "biomarkers"],
}

_STRING_LIST = {"type": "ARRAY", "items": {"type": "STRING"}}

_ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "analyses": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "biomarkerId": {"type": "STRING"},
                    "name": {"type": "STRING"},
                    "value": {"type": "NUMBER"},
                    "status": {"type": "STRING", "enum": ["normal", "abnormal", "critical"]},
                    "riskLevel": {"type": "STRING", "enum": ["low", "moderate", "high"]},
                    "explanation": {"type": "STRING"},
                    "recommendations": _STRING_LIST,
                },
                "required": ["biomarkerId", "name", "value", "status", "riskLevel", "explanation"],
            },
        },
        "overallAssessment": {"type": "STRING"},
        "urgentFlags": _STRING_LIST,
    },
    "required": ["analyses", "overallAssessment"],
}

_PRIORITIES_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "biomarkerId": {"type": "STRING"},
            "name": {"type": "STRING"},
            "priority": {"type": "STRING", "enum": ["critical", "high", "medium", "low"]},
            "reason": {"type": "STRING"},
            "actionItems": _STRING_LIST,
        },
        "required": ["biomarkerId", "name", "priority", "reason"],
    },
}

_SUMMARY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "overallRiskLevel": {"type": "STRING", "enum": ["low", "moderate", "high", "critical"]},
        "keyFindings": _STRING_LIST,
        "concerningBiomarkers": _STRING_LIST,
        "recommendations": _STRING_LIST,
        "nextSteps": _STRING_LIST,
    },
    "required": ["overallRiskLevel", "keyFindings", "recommendations", "nextSteps"],
}


TOOLS: dict[str, ToolDefinition] = {
    ANALYZE_BIOMARKERS: ToolDefinition(
        name=ANALYZE_BIOMARKERS,
        description=(
            "Analyze patient biomarkers to identify concerning values and potential "
            "health risks. Uses AI to provide detailed clinical insights for each biomarker."
        ),
        prompt=(
            "You are a healthcare AI assistant specialized in biomarker analysis.\n"
            "Analyze the following patient biomarker data and provide insights with these fields:\n"
            "- analyses: array of biomarker analysis objects\n"
            "- overallAssessment: brief summary of the patient's health status\n"
            "- urgentFlags: (optional) array of any biomarkers requiring immediate attention\n"
            "\n"
            "Patient Data:\n"
            "{patient_data}"
        ),
        response_schema=_ANALYSIS_SCHEMA,
    ),
    SUGGEST_MONITORING_PRIORITIES: ToolDefinition(
        name=SUGGEST_MONITORING_PRIORITIES,
        description=(
            "Recommend which biomarkers need closer attention and monitoring based on "
            "their current values and clinical significance. Prioritizes biomarkers by risk level."
        ),
        prompt=(
            "You are a healthcare professional. Based on these biomarkers, prioritize "
            "which ones need the closest monitoring.\n"
            "Return an array of objects with:\n"
            "- biomarkerId: the marker ID\n"
            "- name: marker name\n"
            "- priority: critical/high/medium/low\n"
            "- reason: why this priority level\n"
            "- actionItems: (optional) array of recommended actions\n"
            "\n"
            "Patient Data:\n"
            "{patient_data}"
        ),
        response_schema=_PRIORITIES_SCHEMA,
    ),
    GENERATE_HEALTH_SUMMARY: ToolDefinition(
        name=GENERATE_HEALTH_SUMMARY,
        description=(
            "Generate a comprehensive health summary for a patient: overall risk level, "
            "key findings, concerning biomarkers, recommendations and next steps."
        ),
        prompt=(
            "You are a healthcare AI assistant. Create a comprehensive health summary "
            "for this patient with:\n"
            "- overallRiskLevel: low/moderate/high/critical\n"
            "- keyFindings: array of 3-5 key clinical findings\n"
            "- concerningBiomarkers: array of biomarker names that are abnormal\n"
            "- recommendations: array of clinical recommendations\n"
            "- nextSteps: array of recommended follow-up actions\n"
            "\n"
            "Patient Data:\n"
            "{patient_data}"
        ),
        response_schema=_SUMMARY_SCHEMA,
    ),
}


def list_tools() -> list[dict]:
    """Public tool listing for GET /tools."""
    return [
        {"name": t.name, "description": t.description, "inputSchema": _PATIENT_INPUT_SCHEMA}
        for t in TOOLS.values()
    ]
