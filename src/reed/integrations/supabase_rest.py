"""Async Supabase PostgREST client for the tables this service touches.

Uses httpx.AsyncClient against ``{SUPABASE_URL}/rest/v1`` with the service
role key.  Every call opens its own client; there is no pooling or retry.
Tables and stored procedures are owned by the database, this module only
speaks the PostgREST wire format.
"""

from __future__ import annotations

from typing import Any

import httpx

from reed.config import settings


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------

class SupabaseError(Exception):
    """Raised when PostgREST answers non-2xx or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SupabaseNotConfiguredError(SupabaseError):
    """Raised when the Supabase URL or service key is missing."""


# ---------------------------------------------------------------------------
# SupabaseClient
# ---------------------------------------------------------------------------

class SupabaseClient:
    """Thin async wrapper over the PostgREST endpoints of one project."""

    def __init__(
        self,
        url: str | None = None,
        service_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = (settings.SUPABASE_URL if url is None else url).rstrip("/")
        self.service_key = settings.SUPABASE_SERVICE_KEY if service_key is None else service_key
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_key)

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, str] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return the rows of *table* matching *filters* (PostgREST syntax)."""
        params: dict[str, str] = {"select": columns}
        params.update(filters or {})
        if limit is not None:
            params["limit"] = str(limit)
        response = await self._request("GET", f"/{table}", params=params)
        rows = response.json()
        if not isinstance(rows, list):
            raise SupabaseError(
                f"Unexpected select response from {table}",
                status_code=response.status_code,
                body=response.text,
            )
        return rows

    async def select_one(
        self,
        table: str,
        columns: str,
        filters: dict[str, str],
    ) -> dict[str, Any] | None:
        """Return the first matching row, or None."""
        rows = await self.select(table, columns, filters, limit=1)
        return rows[0] if rows else None

    async def update(
        self,
        table: str,
        filters: dict[str, str],
        values: dict[str, Any],
    ) -> None:
        """PATCH the matching rows with *values*."""
        await self._request(
            "PATCH",
            f"/{table}",
            params=filters,
            json=values,
            prefer="return=minimal",
        )

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        """Append a single row to *table*."""
        await self._request("POST", f"/{table}", json=row, prefer="return=minimal")

    async def upsert(
        self,
        table: str,
        row: dict[str, Any],
        on_conflict: str,
    ) -> None:
        """Insert *row* or merge it into the row sharing *on_conflict*."""
        await self._request(
            "POST",
            f"/{table}",
            params={"on_conflict": on_conflict},
            json=row,
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        """Call a stored procedure and return its decoded JSON result."""
        response = await self._request("POST", f"/rpc/{function}", json=params)
        return response.json()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        """Send one request to PostgREST.

        Raises:
            SupabaseNotConfiguredError: when URL or key is missing.
            SupabaseError: on transport failure or a non-2xx status.
        """
        if not self.configured:
            raise SupabaseNotConfiguredError("Supabase credentials not configured")

        try:
            async with httpx.AsyncClient(
                base_url=f"{self.url}/rest/v1",
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    headers=self._headers(prefer),
                )
        except httpx.HTTPError as exc:
            raise SupabaseError(f"Cannot reach Supabase at {self.url}: {exc}") from exc

        if response.is_error:
            raise SupabaseError(
                f"Supabase {method} {path} failed with {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response
