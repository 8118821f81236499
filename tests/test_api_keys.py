"""Tests for API key retrieval and rotation."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from reed.api.dependencies import get_supabase
from reed.config import settings
from reed.main import app


@pytest.fixture
def wired(supabase, postgrest):
    app.dependency_overrides[get_supabase] = lambda: supabase
    return postgrest


# ---------------------------------------------------------------------------
# get-api-key
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_secret_wins(client, wired, monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "from-secret")
    wired.config["gemini_api_key"] = {"value": "from-db"}

    resp = await client.get("/api/get-api-key")

    assert resp.status_code == 200
    assert resp.json() == {"apiKey": "from-secret", "source": "secret"}
    assert wired.requests == []


@pytest.mark.asyncio
async def test_falls_back_to_system_config(client, wired):
    wired.config["gemini_api_key"] = {"value": "from-db"}

    resp = await client.post("/api/get-api-key")

    assert resp.status_code == 200
    assert resp.json() == {"apiKey": "from-db", "source": "database"}
    assert wired.requests[0].url.params["key"] == "eq.gemini_api_key"


@pytest.mark.asyncio
async def test_missing_key_is_404(client, wired):
    resp = await client.get("/api/get-api-key")

    assert resp.status_code == 404
    assert resp.json() == {"error": "API key not configured"}


@pytest.mark.asyncio
async def test_lookup_error_is_404(client, wired):
    wired.fail("GET", "system_config", 500)

    resp = await client.get("/api/get-api-key")

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_not_configured_is_404(client):
    resp = await client.get("/api/get-api-key")

    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# update-api-key
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_requires_authorization(client, wired):
    resp = await client.post("/api/update-api-key", json={"apiKey": "new"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}
    assert wired.config == {}


@pytest.mark.asyncio
async def test_update_rejects_wrong_admin_token(client, wired, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "admin-secret")

    resp = await client.post(
        "/api/update-api-key",
        json={"apiKey": "new"},
        headers={"Authorization": "Bearer guess"},
    )

    assert resp.status_code == 401
    assert wired.config == {}


@pytest.mark.parametrize("body", [{}, {"apiKey": ""}, {"apiKey": 123}, ["new"]])
@pytest.mark.asyncio
async def test_update_validates_key(client, wired, body):
    resp = await client.post(
        "/api/update-api-key", json=body, headers={"Authorization": "Bearer t"},
    )

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid API key provided"}


@pytest.mark.asyncio
async def test_update_stores_key(client, wired, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "admin-secret")

    with patch("reed.services.audit_logger.log") as mock_log:
        resp = await client.post(
            "/api/update-api-key",
            json={"apiKey": "rotated"},
            headers={"Authorization": "Bearer admin-secret"},
        )
        audit_kwargs = mock_log.info.call_args[1]

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "API key updated successfully"}
    assert wired.config["gemini_api_key"]["value"] == "rotated"
    assert "updated_at" in wired.config["gemini_api_key"]

    request = wired.requests[0]
    assert request.url.params["on_conflict"] == "key"
    assert "merge-duplicates" in request.headers["prefer"]

    assert audit_kwargs["event_type"] == "config_change"
    assert audit_kwargs["key"] == "gemini_api_key"
    assert "rotated" not in audit_kwargs.values()


@pytest.mark.asyncio
async def test_update_without_supabase_is_500(client):
    resp = await client.post(
        "/api/update-api-key", json={"apiKey": "new"}, headers={"Authorization": "Bearer t"},
    )

    assert resp.status_code == 500
    assert resp.json() == {"error": "Server configuration error"}


@pytest.mark.asyncio
async def test_update_write_failure_is_500(client, wired):
    wired.fail("POST", "system_config", 500)

    resp = await client.post(
        "/api/update-api-key", json={"apiKey": "new"}, headers={"Authorization": "Bearer t"},
    )

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to update API key"}
