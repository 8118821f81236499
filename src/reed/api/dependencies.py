"""Shared FastAPI dependencies: outbound clients and admin authorization.

Routes receive their integration clients through these providers so tests
can swap them with ``app.dependency_overrides``.
"""

from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reed.config import settings
from reed.integrations.airtable_client import AirtableClient
from reed.integrations.coinbase_commerce import CoinbaseCommerceClient
from reed.integrations.sendgrid_client import SendGridClient
from reed.integrations.supabase_rest import SupabaseClient

# auto_error=False so a missing header maps to our own 401 envelope
_bearer_scheme = HTTPBearer(auto_error=False)


def get_supabase() -> SupabaseClient:
    return SupabaseClient()


def get_coinbase() -> CoinbaseCommerceClient:
    return CoinbaseCommerceClient()


def get_airtable() -> AirtableClient:
    return AirtableClient()


def get_sendgrid() -> SendGridClient:
    return SendGridClient()


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """Guard admin-only routes.

    A bearer token is always required.  When ``ADMIN_TOKEN`` is configured
    the token must match it; otherwise any bearer token is accepted, which
    is only suitable for local development.

    Raises HTTPException(401) on a missing or mismatched token.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    expected = settings.ADMIN_TOKEN
    if expected and not hmac.compare_digest(
        credentials.credentials.encode("utf-8"), expected.encode("utf-8"),
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
