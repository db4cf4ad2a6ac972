"""FastAPI application for the AI analysis service.

Learn: Endpoints mirror the direct-call surface the patient API uses:

  GET  /       service info (doubles as the health check)
  GET  /tools  tool names, descriptions, input schemas
  POST /tool   {toolName, args} → {success, result}
  POST /mcp    the same tools over MCP (streamable HTTP, JSON-RPC)

Without BIOPULSE_GOOGLE_API_KEY the service still starts; every tool
answers with rule-based fallback commentary.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from biopulse import __version__
from biopulse.ai.client import GeminiClient
from biopulse.ai.handlers import ToolHandlers
from biopulse.ai.mcp_server import create_mcp_server
from biopulse.ai.tools import TOOLS, list_tools
from biopulse.config import Settings, settings as default_settings
from biopulse.log import configure_logging
from biopulse.middleware.request_id import RequestIdMiddleware
from biopulse.schemas.analysis import ToolCall

logger = structlog.get_logger()

SERVICE_NAME = "biomarker-ai-analysis"


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    if app.state.handlers.client is None:
        logger.warning(
            "biopulse.ai.no_api_key",
            hint="Set BIOPULSE_GOOGLE_API_KEY; tools will use fallback responses",
        )
    logger.info("biopulse.ai.starting", version=__version__, port=cfg.ai_port, tools=list(TOOLS))
    async with app.state.mcp.session_manager.run():
        yield
    logger.info("biopulse.ai.shutdown")


def create_ai_app(
    settings: Optional[Settings] = None,
    handlers: Optional[ToolHandlers] = None,
) -> FastAPI:
    """Build and return the analysis service application."""
    cfg = settings or default_settings
    configure_logging(cfg.log_level, cfg.environment)

    if handlers is None:
        client = None
        if cfg.google_api_key:
            client = GeminiClient(cfg.google_api_key, cfg.ai_model, cfg.ai_api_base)
        handlers = ToolHandlers(client)

    app = FastAPI(
        title="BioPulse AI Analysis",
        description="Generative-model commentary on patient biomarkers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.handlers = handlers
    app.state.mcp = create_mcp_server(SERVICE_NAME, handlers, host=cfg.ai_host)
    app.add_middleware(RequestIdMiddleware)

    @app.get("/")
    async def service_info():
        return {
            "name": SERVICE_NAME,
            "version": __version__,
            "status": "running",
            "transport": "http-json",
        }

    @app.get("/tools")
    async def tools():
        return {"tools": list_tools()}

    @app.post("/tool")
    async def call_tool(body: ToolCall, request: Request):
        if body.tool_name not in TOOLS:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": f"Unknown tool: {body.tool_name}"},
            )

        logger.info("biopulse.ai.tool_call", tool=body.tool_name, patient_id=body.args.patient_id)
        try:
            result = await request.app.state.handlers.run(body.tool_name, body.args)
        except Exception as e:
            logger.exception("biopulse.ai.tool_failed", tool=body.tool_name)
            return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

        return {"success": True, "result": result}

    # Catch-all mount; the routes above take precedence. Serves POST /mcp.
    app.mount("/", app.state.mcp.streamable_http_app())

    return app


def run() -> None:
    """Console entry point: serve the analysis service with uvicorn."""
    import uvicorn

    uvicorn.run(
        "biopulse.ai.app:app",
        host=default_settings.ai_host,
        port=default_settings.ai_port,
    )


# Default app instance (used by uvicorn: biopulse.ai.app:app)
app = create_ai_app()
