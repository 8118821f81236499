"""Charge creation proxy -- keeps the Coinbase API key server-side."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from reed.api.dependencies import get_coinbase
from reed.integrations.coinbase_commerce import CoinbaseCommerceClient
from reed.services.payment_service import create_charge

log = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["payments"])


@router.post("/create-charge")
async def create_charge_endpoint(
    request: Request,
    coinbase: CoinbaseCommerceClient = Depends(get_coinbase),
):
    """Create a Coinbase Commerce charge for one of the fixed site prices."""
    if not coinbase.configured:
        raise HTTPException(status_code=500, detail="Payment system not configured")

    try:
        body = json.loads(await request.body() or b"{}")
        charge = await create_charge(coinbase, body)
    except HTTPException:
        raise
    except Exception:
        log.exception("create_charge_error")
        raise HTTPException(status_code=500, detail="Internal error")

    return {"data": charge}
