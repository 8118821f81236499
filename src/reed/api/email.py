"""Transactional e-mail relay through SendGrid."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from reed.api.dependencies import get_sendgrid
from reed.integrations.sendgrid_client import SendGridClient
from reed.middleware.cors import EMAIL_CORS_HEADERS

log = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["email"])

CORS_HEADERS = EMAIL_CORS_HEADERS

MISSING_FIELDS = "Missing required fields: to, subject, and (text or html)"


def _json(content, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)


@router.api_route("/send-email", methods=["POST", "OPTIONS"])
async def send_email(
    request: Request,
    sendgrid: SendGridClient = Depends(get_sendgrid),
):
    """Send one message built from ``{to, subject, text, html}``."""
    if request.method == "OPTIONS":
        return PlainTextResponse("ok", headers=CORS_HEADERS)

    try:
        body = json.loads(await request.body() or b"{}")
        if not isinstance(body, dict):
            body = {}
        to = body.get("to")
        subject = body.get("subject")
        text = body.get("text")
        html = body.get("html")

        if not to or not subject or (not text and not html):
            return _json({"error": MISSING_FIELDS}, status_code=400)

        await sendgrid.send(to, subject, text=text, html=html)
    except Exception as exc:
        log.error("send_email_failed", error=str(exc))
        return _json({"error": str(exc)}, status_code=500)

    log.info("email_sent", subject=subject)
    return _json({"success": True, "message": "Email sent successfully"})
