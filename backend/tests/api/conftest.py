"""API test infrastructure: async httpx client against a fresh app per test."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ---------------------------------------------------------------------------
# FastAPI app with its own result store
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def app():
    from app.main import create_app

    application = create_app()
    yield application
    application.state.result_store.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Study helpers
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def study_payload(industrial_components, arc_flash_settings_dict) -> dict:
    return {"components": industrial_components, "settings": arc_flash_settings_dict}


@pytest_asyncio.fixture
async def created_study(client: AsyncClient, study_payload: dict) -> dict:
    """Run a study through the API and return the response body."""
    resp = await client.post("/api/v1/fault-studies", json=study_payload)
    assert resp.status_code == 201
    return resp.json()
