"""Coinbase Commerce webhook endpoint."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from reed.api.dependencies import get_supabase
from reed.integrations.supabase_rest import SupabaseClient
from reed.services.payment_service import handle_webhook

log = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["webhooks"])


@router.post("/coinbase-webhook")
async def coinbase_webhook(
    request: Request,
    supabase: SupabaseClient = Depends(get_supabase),
):
    """Receive and process Coinbase Commerce webhook events.

    Reads the raw request body and the X-CC-Webhook-Signature header,
    then delegates to the payment service for verification and handling.
    """
    payload = await request.body()
    signature = request.headers.get("x-cc-webhook-signature")
    try:
        return await handle_webhook(supabase, payload, signature)
    except HTTPException:
        raise
    except Exception:
        log.exception("webhook_error")
        raise HTTPException(status_code=500, detail="Internal server error")
