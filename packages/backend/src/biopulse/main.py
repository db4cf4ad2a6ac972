"""FastAPI application factory for the patient API.

Learn: create_app() is the composition root. It builds the one
InMemoryStore, the services over it, the connection gateway and the
live-update broadcaster, wires the gateway's disconnect hook to the
broadcaster, and parks everything on app.state for the dependencies in
api/deps.py. Nothing is a module-level singleton except the default
`app` that uvicorn imports.

Lifespan only logs startup and, on shutdown, cancels any live-update
timers still running.
"""

import random
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from biopulse import __version__
from biopulse.api import api_router
from biopulse.config import Settings, settings as default_settings
from biopulse.db import InMemoryStore, seed_store
from biopulse.log import configure_logging
from biopulse.realtime.broadcaster import LiveUpdateBroadcaster
from biopulse.realtime.gateway import ConnectionGateway
from biopulse.services.analysis_client import AnalysisClient
from biopulse.services.biomarker_service import BiomarkerService
from biopulse.services.patient_service import PatientService

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    cfg: Settings = app.state.settings
    logger.info(
        "biopulse.starting",
        version=__version__,
        environment=cfg.environment,
        port=cfg.port,
        patients=len(app.state.store.list_patients()),
    )

    yield

    logger.info("biopulse.shutdown")
    await app.state.broadcaster.shutdown()


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render errors as {"success": false, "error": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[InMemoryStore] = None,
    analysis_client: Optional[AnalysisClient] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    cfg = settings or default_settings
    configure_logging(cfg.log_level, cfg.environment)

    if store is None:
        store = seed_store(InMemoryStore(), random.Random(cfg.random_seed), cfg.seed_patients)

    app = FastAPI(
        title="BioPulse API",
        description="Patient biomarkers with live updates and AI analysis",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Composition ───────────────────────────────────────
    patient_service = PatientService(store)
    biomarker_service = BiomarkerService(store)
    gateway = ConnectionGateway()
    broadcaster = LiveUpdateBroadcaster.from_settings(
        biomarker_service,
        gateway,
        cfg,
        rng=random.Random(cfg.random_seed),
    )
    gateway.on_disconnect(broadcaster.handle_disconnect)

    app.state.settings = cfg
    app.state.store = store
    app.state.patient_service = patient_service
    app.state.biomarker_service = biomarker_service
    app.state.analysis_client = analysis_client or AnalysisClient(
        cfg.mcp_url, timeout=cfg.mcp_timeout_seconds
    )
    app.state.gateway = gateway
    app.state.broadcaster = broadcaster

    # ── Middleware stack ──────────────────────────────────
    from biopulse.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(HTTPException, _http_exception_handler)

    @app.get("/")
    async def root():
        return {"message": "Healthcare Biomarker API"}

    app.include_router(api_router)

    # Mount WebSocket route (live biomarker updates)
    from biopulse.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "biopulse.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )


# Default app instance (used by uvicorn: biopulse.main:app)
app = create_app()
