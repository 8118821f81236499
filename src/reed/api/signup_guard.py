"""Signup guard endpoint -- ``check`` before signup, ``log`` after it."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from reed.api.dependencies import get_supabase
from reed.integrations.supabase_rest import SupabaseClient
from reed.middleware.cors import SIGNUP_GUARD_CORS_HEADERS
from reed.middleware.rate_limit import get_client_ip
from reed.services.signup_guard import ALLOWED, check_signup, log_signup

log = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["signup"])

CORS_HEADERS = SIGNUP_GUARD_CORS_HEADERS


def _json(content, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)


@router.api_route(
    "/signup-guard",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)
async def signup_guard(
    request: Request,
    supabase: SupabaseClient = Depends(get_supabase),
):
    """Rate-check or record a signup. Never blocks on infrastructure failure."""
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)

    if request.method != "POST":
        return _json({"error": "Method not allowed"}, status_code=405)

    if not supabase.configured:
        return _json(dict(ALLOWED))

    try:
        body = json.loads(await request.body() or b"{}")
        if not isinstance(body, dict):
            body = {}
        action = body.get("action")
        fingerprint = body.get("fingerprint") or None
        email = body.get("email") or None
        ip = get_client_ip(request)

        if action == "check":
            return _json(await check_signup(supabase, ip, fingerprint))

        if action == "log":
            user_agent = request.headers.get("user-agent", "")
            return _json(await log_signup(supabase, ip, fingerprint, email, user_agent))

        return _json(
            {"error": 'Invalid action. Use "check" or "log".'}, status_code=400,
        )
    except Exception:
        log.exception("signup_guard_error")
        return _json(dict(ALLOWED))
