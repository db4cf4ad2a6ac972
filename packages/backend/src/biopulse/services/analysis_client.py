"""AI analysis client — talks to the analysis service over HTTP.

Learn: The analysis service exposes one direct-call endpoint,
POST /tool {toolName, args}, that answers {success, result} or
{success: false, error}. Every failure mode (connection refused,
non-2xx, success=false, bad JSON) is normalised to
AnalysisServiceError so API routes need a single except clause.

comprehensive_analysis() fans the three tools out concurrently
with asyncio.gather — total latency is the slowest tool, not the sum.
"""

import asyncio
from typing import Any, Optional

import httpx
import structlog

from biopulse.schemas.analysis import ComprehensiveAnalysis, PatientAnalysisRequest

logger = structlog.get_logger()

ANALYZE_BIOMARKERS = "analyze_biomarkers"
SUGGEST_MONITORING_PRIORITIES = "suggest_monitoring_priorities"
GENERATE_HEALTH_SUMMARY = "generate_health_summary"


class AnalysisServiceError(Exception):
    """The AI analysis service was unreachable or returned an error."""


class AnalysisClient:
    """Async client for the AI analysis service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def check_health(self) -> bool:
        """True if the service answers GET / with a 2xx."""
        try:
            async with self._client() as client:
                resp = await client.get("/")
            return resp.is_success
        except httpx.HTTPError as e:
            logger.warning("biopulse.analysis.health_failed", error=str(e))
            return False

    async def call_tool(self, tool_name: str, request: PatientAnalysisRequest) -> Any:
        payload = {
            "toolName": tool_name,
            "args": request.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
        try:
            async with self._client() as client:
                resp = await client.post("/tool", json=payload)
        except httpx.HTTPError as e:
            logger.error("biopulse.analysis.unreachable", tool=tool_name, error=str(e))
            raise AnalysisServiceError(f"Analysis service unreachable: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if not resp.is_success:
            error = data.get("error") if isinstance(data, dict) else None
            raise AnalysisServiceError(
                f"Analysis service error: {error or resp.reason_phrase}"
            )
        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise AnalysisServiceError(error or "Analysis service returned error")

        return data.get("result")

    async def analyze_biomarkers(self, request: PatientAnalysisRequest) -> Any:
        return await self.call_tool(ANALYZE_BIOMARKERS, request)

    async def suggest_monitoring_priorities(self, request: PatientAnalysisRequest) -> Any:
        return await self.call_tool(SUGGEST_MONITORING_PRIORITIES, request)

    async def generate_health_summary(self, request: PatientAnalysisRequest) -> Any:
        return await self.call_tool(GENERATE_HEALTH_SUMMARY, request)

    async def comprehensive_analysis(
        self, request: PatientAnalysisRequest
    ) -> ComprehensiveAnalysis:
        """Run all three tools concurrently; any failure fails the whole call."""
        analysis, priorities, summary = await asyncio.gather(
            self.analyze_biomarkers(request),
            self.suggest_monitoring_priorities(request),
            self.generate_health_summary(request),
        )
        logger.info("biopulse.analysis.completed", patient_id=request.patient_id)
        return ComprehensiveAnalysis(
            analyze_biomarkers=analysis,
            suggest_monitoring_priorities=priorities,
            generate_health_summary=summary,
        )
