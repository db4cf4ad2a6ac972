"""MCP transport for the analysis tools.

Learn: The same three tools served by POST /tool are also registered on
a FastMCP server, so MCP clients (desktop assistants, inspectors) can
list and call them over streamable HTTP at /mcp. Each tool takes the
patient fields as its arguments, rebuilds a PatientAnalysisRequest and
delegates to ToolHandlers; the fallback rules apply here too.

The server is stateless and answers with plain JSON: every POST /mcp is
a self-contained JSON-RPC exchange with no session to resume.
"""

from typing import Optional

from mcp.server.fastmcp import FastMCP

from biopulse.ai.handlers import ToolHandlers
from biopulse.ai.tools import (
    ANALYZE_BIOMARKERS,
    GENERATE_HEALTH_SUMMARY,
    SUGGEST_MONITORING_PRIORITIES,
    TOOLS,
)
from biopulse.schemas.analysis import BiomarkerData, PatientAnalysisRequest


def _request(
    patient_id: str,
    patient_name: str,
    biomarkers: list[BiomarkerData],
    age: Optional[int],
    gender: Optional[str],
) -> PatientAnalysisRequest:
    return PatientAnalysisRequest(
        patient_id=patient_id,
        patient_name=patient_name,
        age=age,
        gender=gender,
        biomarkers=biomarkers,
    )


def create_mcp_server(name: str, handlers: ToolHandlers, host: str = "0.0.0.0") -> FastMCP:
    """Build a FastMCP server whose tools delegate to `handlers`."""
    mcp = FastMCP(
        name,
        host=host,
        stateless_http=True,
        json_response=True,
    )

    @mcp.tool(name=ANALYZE_BIOMARKERS, description=TOOLS[ANALYZE_BIOMARKERS].description)
    async def analyze_biomarkers(
        patient_id: str,
        patient_name: str,
        biomarkers: list[BiomarkerData],
        age: Optional[int] = None,
        gender: Optional[str] = None,
    ) -> list[dict]:
        patient = _request(patient_id, patient_name, biomarkers, age, gender)
        return await handlers.analyze_biomarkers(patient)

    @mcp.tool(
        name=SUGGEST_MONITORING_PRIORITIES,
        description=TOOLS[SUGGEST_MONITORING_PRIORITIES].description,
    )
    async def suggest_monitoring_priorities(
        patient_id: str,
        patient_name: str,
        biomarkers: list[BiomarkerData],
        age: Optional[int] = None,
        gender: Optional[str] = None,
    ) -> list[dict]:
        patient = _request(patient_id, patient_name, biomarkers, age, gender)
        return await handlers.suggest_monitoring_priorities(patient)

    @mcp.tool(name=GENERATE_HEALTH_SUMMARY, description=TOOLS[GENERATE_HEALTH_SUMMARY].description)
    async def generate_health_summary(
        patient_id: str,
        patient_name: str,
        biomarkers: list[BiomarkerData],
        age: Optional[int] = None,
        gender: Optional[str] = None,
    ) -> dict:
        patient = _request(patient_id, patient_name, biomarkers, age, gender)
        return await handlers.generate_health_summary(patient)

    return mcp
