"""Image-model API key retrieval and rotation endpoints."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from reed.api.dependencies import get_supabase, require_admin
from reed.integrations.supabase_rest import SupabaseClient, SupabaseError
from reed.middleware.rate_limit import get_client_ip
from reed.services.api_key_service import API_KEY_CONFIG_KEY, resolve_api_key, store_api_key
from reed.services.audit_logger import audit

log = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["config"])


@router.api_route("/get-api-key", methods=["GET", "POST"])
async def get_api_key(supabase: SupabaseClient = Depends(get_supabase)):
    """Return the image-model API key and where it came from."""
    try:
        resolved = await resolve_api_key(supabase)
    except Exception:
        log.exception("api_key_fetch_error")
        raise HTTPException(status_code=500, detail="Failed to fetch API key")

    if resolved is None:
        raise HTTPException(status_code=404, detail="API key not configured")

    api_key, source = resolved
    return {"apiKey": api_key, "source": source}


@router.post("/update-api-key", dependencies=[Depends(require_admin)])
async def update_api_key(
    request: Request,
    supabase: SupabaseClient = Depends(get_supabase),
):
    """Store a new image-model API key in system_config."""
    try:
        body = json.loads(await request.body() or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid API key provided")

    api_key = body.get("apiKey") if isinstance(body, dict) else None
    if not api_key or not isinstance(api_key, str):
        raise HTTPException(status_code=400, detail="Invalid API key provided")

    if not supabase.configured:
        raise HTTPException(status_code=500, detail="Server configuration error")

    try:
        await store_api_key(supabase, api_key)
    except SupabaseError as exc:
        log.error("api_key_update_failed", error=str(exc), status=exc.status_code)
        raise HTTPException(status_code=500, detail="Failed to update API key")

    audit.log_config_change(API_KEY_CONFIG_KEY, source_ip=get_client_ip(request))
    return {"success": True, "message": "API key updated successfully"}
