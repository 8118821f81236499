from __future__ import annotations

import json

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from reed.config import settings
from reed.integrations.supabase_rest import SupabaseClient
from reed.main import app

SUPABASE_URL = "https://project.supabase.test"
SERVICE_KEY = "service-role-key"

# Every credential starts blank; tests switch on what they exercise.
_BLANK_SETTINGS = {
    "APP_ENV": "test",
    "SITE_URL": "https://usereed.com",
    "COINBASE_API_KEY": "",
    "COINBASE_WEBHOOK_SECRET": "",
    "SUPABASE_URL": "",
    "SUPABASE_SERVICE_KEY": "",
    "AIRTABLE_API_TOKEN": "",
    "AIRTABLE_BASE_ID": "",
    "SENDGRID_API_KEY": "",
    "SENDGRID_FROM_EMAIL": "noreply@usered.com",
    "GEMINI_API_KEY": "",
    "ADMIN_TOKEN": "",
}


class FakePostgrest:
    """In-memory stand-in for the PostgREST endpoints the service calls."""

    def __init__(self):
        self.profiles: dict[str, dict] = {}
        self.transactions: list[dict] = []
        self.signup_attempts: list[dict] = []
        self.config: dict[str, dict] = {}
        self.rpc_calls: list[dict] = []
        self.rpc_result: object = {"allowed": True}
        self.failures: dict[tuple[str, str], int] = {}
        self.requests: list[httpx.Request] = []

    def fail(self, method: str, table: str, status_code: int = 500) -> None:
        self.failures[(method, table)] = status_code

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.split("/rest/v1/", 1)[1]
        status = self.failures.get((request.method, table))
        if status is not None:
            return httpx.Response(status, text='{"message":"boom"}')

        params = request.url.params
        body = json.loads(request.content) if request.content else None

        if table == "user_profiles":
            user_id = params.get("id", "").removeprefix("eq.")
            if request.method == "GET":
                row = self.profiles.get(user_id)
                return httpx.Response(200, json=[{"credits": row["credits"]}] if row else [])
            if request.method == "PATCH":
                if user_id in self.profiles:
                    self.profiles[user_id].update(body)
                return httpx.Response(204)

        if table == "credit_transactions" and request.method == "POST":
            self.transactions.append(body)
            return httpx.Response(201)

        if table == "signup_attempts" and request.method == "POST":
            self.signup_attempts.append(body)
            return httpx.Response(201)

        if table == "rpc/check_signup_allowed":
            self.rpc_calls.append(body)
            return httpx.Response(200, json=self.rpc_result)

        if table == "system_config":
            if request.method == "GET":
                key = params.get("key", "").removeprefix("eq.")
                row = self.config.get(key)
                return httpx.Response(200, json=[{"value": row["value"]}] if row else [])
            if request.method == "POST":
                self.config[body["key"]] = body
                return httpx.Response(201)

        return httpx.Response(404, json={"message": f"unknown route {table}"})


@pytest.fixture(autouse=True)
def blank_settings(monkeypatch):
    for name, value in _BLANK_SETTINGS.items():
        monkeypatch.setattr(settings, name, value)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def postgrest():
    return FakePostgrest()


@pytest.fixture
def supabase(postgrest, monkeypatch):
    """A configured SupabaseClient routed to the in-memory PostgREST."""
    monkeypatch.setattr(settings, "SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setattr(settings, "SUPABASE_SERVICE_KEY", SERVICE_KEY)
    return SupabaseClient(transport=httpx.MockTransport(postgrest.handler))


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
