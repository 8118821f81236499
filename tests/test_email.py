"""Tests for the SendGrid e-mail relay."""

from __future__ import annotations

import json

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from reed.api.dependencies import get_sendgrid
from reed.integrations.sendgrid_client import SendGridClient, build_mail_payload
from reed.main import app
from reed.middleware.cors import RouteAwareCORSMiddleware

EMAIL_URL = "/api/send-email"


class FakeSendGrid:
    def __init__(self, status_code: int = 202):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, text="bad sender")
        return httpx.Response(self.status_code)


def _wire(fake: FakeSendGrid, api_key: str = "SG.key") -> None:
    sendgrid = SendGridClient(
        api_key=api_key,
        from_email="hello@usereed.test",
        api_url="https://api.sendgrid.test/v3",
        transport=httpx.MockTransport(fake.handler),
    )
    app.dependency_overrides[get_sendgrid] = lambda: sendgrid


def test_payload_orders_plain_before_html():
    payload = build_mail_payload("a@b.test", "Hi", "from@x.test", text="plain", html="<p>hi</p>")

    assert payload == {
        "personalizations": [{"to": [{"email": "a@b.test"}]}],
        "from": {"email": "from@x.test"},
        "subject": "Hi",
        "content": [
            {"type": "text/plain", "value": "plain"},
            {"type": "text/html", "value": "<p>hi</p>"},
        ],
    }


def test_payload_html_only():
    payload = build_mail_payload("a@b.test", "Hi", "from@x.test", html="<p>hi</p>")

    assert payload["content"] == [{"type": "text/html", "value": "<p>hi</p>"}]


@pytest.mark.asyncio
async def test_preflight(client):
    resp = await client.options(EMAIL_URL)

    assert resp.status_code == 200
    assert resp.text == "ok"
    assert resp.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_browser_preflight_reaches_handler():
    cors_app = RouteAwareCORSMiddleware(
        app, allow_origins=[], allow_methods=["*"], allow_headers=["*"],
    )
    transport = ASGITransport(app=cors_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.options(
            EMAIL_URL,
            headers={
                "Origin": "https://usereed.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )

    assert resp.status_code == 200
    assert resp.text == "ok"
    assert resp.headers["access-control-allow-headers"] == (
        "authorization, x-client-info, apikey, content-type"
    )


@pytest.mark.asyncio
async def test_send_email(client):
    fake = FakeSendGrid()
    _wire(fake)

    resp = await client.post(
        EMAIL_URL, json={"to": "user@example.test", "subject": "Welcome", "text": "Hello"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Email sent successfully"}
    assert resp.headers["access-control-allow-origin"] == "*"

    request = fake.requests[0]
    assert request.url == "https://api.sendgrid.test/v3/mail/send"
    assert request.headers["authorization"] == "Bearer SG.key"
    sent = json.loads(request.content)
    assert sent["from"] == {"email": "hello@usereed.test"}
    assert sent["personalizations"] == [{"to": [{"email": "user@example.test"}]}]


@pytest.mark.parametrize(
    "body",
    [
        {"subject": "s", "text": "t"},
        {"to": "a@b.test", "text": "t"},
        {"to": "a@b.test", "subject": "s"},
    ],
)
@pytest.mark.asyncio
async def test_missing_fields_is_400(client, body):
    fake = FakeSendGrid()
    _wire(fake)

    resp = await client.post(EMAIL_URL, json=body)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing required fields: to, subject, and (text or html)"}
    assert fake.requests == []


@pytest.mark.asyncio
async def test_sendgrid_error_is_500(client):
    _wire(FakeSendGrid(status_code=403))

    resp = await client.post(EMAIL_URL, json={"to": "a@b.test", "subject": "s", "html": "<b>x</b>"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "SendGrid error: bad sender"}


@pytest.mark.asyncio
async def test_not_configured_is_500(client):
    fake = FakeSendGrid()
    _wire(fake, api_key="")

    resp = await client.post(EMAIL_URL, json={"to": "a@b.test", "subject": "s", "text": "t"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "SendGrid not configured"}
    assert fake.requests == []
