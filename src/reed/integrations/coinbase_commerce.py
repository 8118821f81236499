"""Coinbase Commerce integration -- charge creation and webhook signatures.

Charges are created through the REST API with the server-held API key, so
the key never reaches the browser.  Webhook deliveries are signed with
HMAC-SHA256 over the raw body using the shared webhook secret.

Usage:
    from reed.integrations.coinbase_commerce import CoinbaseCommerceClient

    client = CoinbaseCommerceClient()
    charge = await client.create_charge({"name": "Creator plan", ...})
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any

import httpx

from reed.config import settings

API_VERSION = "2018-03-22"


class CoinbaseError(Exception):
    """Raised when Coinbase Commerce rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def compute_signature(payload: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 digest Coinbase sends for *payload*."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of the X-CC-Webhook-Signature header."""
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8"))


class CoinbaseCommerceClient:
    """Async client for the Coinbase Commerce charges API."""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = settings.COINBASE_API_KEY if api_key is None else api_key
        self.api_url = (settings.COINBASE_API_URL if api_url is None else api_url).rstrip("/")
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def create_charge(self, charge: dict[str, Any]) -> dict[str, Any]:
        """POST /charges and return the ``data`` object of the response.

        Raises:
            CoinbaseError: on transport failure or a non-2xx status; the
                upstream status code is kept on the exception.
        """
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/charges",
                    json=charge,
                    headers={
                        "Content-Type": "application/json",
                        "X-CC-Api-Key": self.api_key,
                        "X-CC-Version": API_VERSION,
                    },
                )
        except httpx.HTTPError as exc:
            raise CoinbaseError(f"Cannot reach Coinbase Commerce: {exc}") from exc

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise CoinbaseError(
                f"Charge creation failed with {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        return response.json().get("data")
