"""Tests for the health endpoint and app wiring."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_reports_db(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["db"] is True
    assert "redis" in data


@pytest.mark.asyncio
async def test_openapi_lists_upload_route(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/openapi.json")
    assert resp.status_code == 200
    assert "/api/v1/uploads/{upload_id}/scans" in resp.json()["paths"]
