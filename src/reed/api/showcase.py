"""Airtable proxy for the landing-page showcases -- keeps the token server-side."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from reed.api.dependencies import get_airtable
from reed.integrations.airtable_client import AirtableClient, AirtableError
from reed.services.showcase_service import fetch_showcase

log = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["showcase"])

CACHE_CONTROL = "public, max-age=300"


@router.get("/airtable-proxy")
async def airtable_proxy(
    table: str | None = None,
    category: str | None = None,
    airtable: AirtableClient = Depends(get_airtable),
):
    """Return active records of the Portfolio or Revenue table."""
    if not airtable.configured:
        raise HTTPException(status_code=500, detail="Airtable not configured")

    try:
        data = await fetch_showcase(airtable, table, category)
    except HTTPException:
        raise
    except AirtableError as exc:
        log.error("airtable_error", table=table, status=exc.status_code, error=str(exc))
        if exc.status_code is None:
            raise HTTPException(status_code=500, detail="Internal error")
        raise HTTPException(status_code=exc.status_code, detail="Airtable error")
    except Exception:
        log.exception("airtable_proxy_error", table=table)
        raise HTTPException(status_code=500, detail="Internal error")

    return JSONResponse(content=data, headers={"Cache-Control": CACHE_CONTROL})
