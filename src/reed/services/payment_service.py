"""Coinbase Commerce payments -- charge creation and webhook handling."""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import HTTPException
from pydantic import BaseModel, StrictFloat, StrictInt, ValidationError

from reed.config import settings
from reed.integrations.coinbase_commerce import (
    CoinbaseCommerceClient,
    CoinbaseError,
    verify_signature,
)
from reed.integrations.supabase_rest import SupabaseClient, SupabaseError
from reed.services.credit_service import add_credits, parse_credit_amount

log = structlog.get_logger()

# Prices (USD) of every plan and service sold on the site.  A client-supplied
# amount must be one of these.
VALID_PRICES = frozenset({29, 47, 59, 99, 147, 199, 297, 397, 597, 697, 997})


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class ChargeRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    amount: StrictInt | StrictFloat | None = None
    metadata: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Charge creation
# ---------------------------------------------------------------------------

def _validate_charge_request(body: Any) -> ChargeRequest:
    """Reject malformed requests and prices outside VALID_PRICES."""
    try:
        request = ChargeRequest.model_validate(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid charge parameters")

    if not request.name or request.amount is None or request.amount <= 0:
        raise HTTPException(status_code=400, detail="Invalid charge parameters")

    if request.amount not in VALID_PRICES:
        raise HTTPException(status_code=400, detail="Invalid price")

    return request


def build_charge_payload(request: ChargeRequest, site_url: str) -> dict[str, Any]:
    """Build the Coinbase /charges body for a validated request."""
    site_url = site_url.rstrip("/")
    return {
        "name": request.name,
        "description": request.description or "",
        "pricing_type": "fixed_price",
        "local_price": {
            "amount": str(int(request.amount)),
            "currency": "USD",
        },
        "metadata": request.metadata or {},
        "redirect_url": f"{site_url}?payment=success",
        "cancel_url": f"{site_url}?payment=cancelled",
    }


async def create_charge(coinbase: CoinbaseCommerceClient, body: Any) -> dict[str, Any]:
    """Validate a client charge request and create it on Coinbase Commerce.

    Validation happens before any outbound call.  Upstream rejections keep
    their status code; transport failures propagate as CoinbaseError.
    """
    request = _validate_charge_request(body)
    payload = build_charge_payload(request, settings.SITE_URL)

    try:
        charge = await coinbase.create_charge(payload)
    except CoinbaseError as exc:
        if exc.status_code is None:
            raise
        log.error("coinbase_charge_failed", status=exc.status_code, body=exc.body)
        raise HTTPException(status_code=exc.status_code, detail="Payment creation failed")

    log.info(
        "charge_created",
        code=(charge or {}).get("code"),
        amount=payload["local_price"]["amount"],
    )
    return charge


# ---------------------------------------------------------------------------
# Webhook helpers
# ---------------------------------------------------------------------------

def _check_signature(payload: bytes, signature: str | None) -> None:
    """Verify the webhook signature when both secret and header are present.

    With no secret configured, or no header sent, verification is skipped
    so local deliveries can be replayed by hand.
    """
    secret = settings.COINBASE_WEBHOOK_SECRET
    if not secret or not signature:
        log.warning(
            "webhook_signature_skipped",
            secret_configured=bool(secret),
            signature_present=bool(signature),
        )
        return

    if not verify_signature(payload, signature, secret):
        log.error("webhook_signature_invalid")
        raise HTTPException(status_code=401, detail="Invalid signature")


def _parse_event(payload: bytes) -> dict[str, Any]:
    """Decode the delivery body and return its ``event`` object."""
    try:
        body = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    event = body.get("event")
    return event if isinstance(event, dict) else {}


async def _process_charge_confirmed(
    supabase: SupabaseClient,
    charge: dict[str, Any],
) -> dict[str, Any]:
    """Credit the buyer named in the charge metadata."""
    metadata = charge.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    user_id = metadata.get("user_id")
    credits = parse_credit_amount(metadata.get("credits"))

    if not user_id or credits <= 0:
        log.error("webhook_metadata_missing", code=charge.get("code"))
        raise HTTPException(status_code=400, detail="Missing metadata")

    log.info("webhook_processing_payment", user_id=user_id, credits=credits)
    try:
        new_balance = await add_credits(
            supabase,
            str(user_id),
            credits,
            metadata,
            reference_id=charge.get("code"),
        )
    except SupabaseError as exc:
        log.error(
            "credits_update_failed",
            user_id=user_id,
            error=str(exc),
            status=exc.status_code,
            body=exc.body,
        )
        raise HTTPException(status_code=500, detail="Failed to update credits")

    log.info("credits_updated", user_id=user_id, credits=credits, balance=new_balance)
    return {"success": True, "message": "Credits added"}


# ---------------------------------------------------------------------------
# Webhook entry-point
# ---------------------------------------------------------------------------

async def handle_webhook(
    supabase: SupabaseClient,
    payload: bytes,
    signature: str | None,
) -> dict[str, Any]:
    """Verify a Coinbase Commerce delivery and apply it.

    Only ``charge:confirmed`` mutates state.  There is no replay protection:
    Coinbase retries failed deliveries, so non-2xx answers are expected to
    come back.
    """
    _check_signature(payload, signature)
    event = _parse_event(payload)
    event_type = event.get("type")
    charge = event.get("data")
    if not isinstance(charge, dict):
        charge = {}

    log.info("webhook_received", event_type=event_type, code=charge.get("code"))

    if event_type == "charge:confirmed":
        return await _process_charge_confirmed(supabase, charge)

    if event_type == "charge:pending":
        log.info("payment_pending", code=charge.get("code"))
    elif event_type == "charge:failed":
        log.info("payment_failed", code=charge.get("code"))

    return {"received": True}
