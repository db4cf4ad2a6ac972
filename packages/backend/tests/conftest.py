"""Test fixtures — a fresh, deterministically seeded app per test.

Learn: Nothing in biopulse is a global, so isolation is just
construction: every test gets its own InMemoryStore (seeded from a
fixed random seed), its own broadcaster and gateway, and an httpx
client bound to that app through ASGITransport.

Live-update intervals are shortened to tens of milliseconds so tests
that wait for real ticks finish quickly.
"""

import random

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from biopulse.ai.app import create_ai_app
from biopulse.config import Settings
from biopulse.db import InMemoryStore, seed_store
from biopulse.main import create_app
from biopulse.services.analysis_client import AnalysisClient


@pytest.fixture()
def settings():
    return Settings(
        random_seed=1234,
        live_update_min_interval=0.02,
        live_update_max_interval=0.04,
        google_api_key="",
    )


@pytest.fixture()
def store(settings):
    return seed_store(InMemoryStore(), random.Random(settings.random_seed), settings.seed_patients)


@pytest.fixture()
def patient(store):
    """The first seeded patient."""
    return store.list_patients()[0]


@pytest.fixture()
def ai_app(settings):
    """Analysis service without an API key — every tool uses its fallback."""
    return create_ai_app(settings=settings)


@pytest.fixture()
def analysis_client(ai_app):
    """AnalysisClient talking to the in-process analysis service."""
    return AnalysisClient("http://ai", transport=ASGITransport(app=ai_app))


@pytest.fixture()
def app(settings, store, analysis_client):
    return create_app(settings=settings, store=store, analysis_client=analysis_client)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client bound to the app; timers are shut down afterwards."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.broadcaster.shutdown()
