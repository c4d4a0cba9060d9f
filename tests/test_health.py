"""Tests for health and version endpoints."""

import pytest


@pytest.mark.asyncio
async def test_health(client) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness_reports_missing_redis(client) -> None:
    resp = await client.get("/ready")
    body = resp.json()
    assert body["checks"]["database"] == "ok"
    assert body["checks"]["redis"].startswith("error")
    assert body["status"] == "degraded"


@pytest.mark.asyncio
async def test_version(client) -> None:
    body = (await client.get("/version")).json()
    assert body["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client) -> None:
    resp = await client.get("/health", headers={"X-Request-Id": "abc123"})
    assert resp.headers["X-Request-Id"] == "abc123"


@pytest.mark.asyncio
async def test_malformed_request_id_is_replaced(client) -> None:
    resp = await client.get("/health", headers={"X-Request-Id": "bad id; drop"})
    request_id = resp.headers["X-Request-Id"]
    assert request_id != "bad id; drop"
    assert len(request_id) == 32


@pytest.mark.asyncio
async def test_cors_preflight_for_client_origin(client) -> None:
    resp = await client.options(
        "/health",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "GET"},
    )
    assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert resp.headers["access-control-max-age"] == "600"
