"""Airtable REST client for the portfolio and revenue showcase tables."""

from __future__ import annotations

from typing import Any

import httpx

from reed.config import settings


class AirtableError(Exception):
    """Raised when Airtable answers non-2xx or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AirtableClient:
    def __init__(
        self,
        api_token: str | None = None,
        base_id: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_token = settings.AIRTABLE_API_TOKEN if api_token is None else api_token
        self.base_id = settings.AIRTABLE_BASE_ID if base_id is None else base_id
        self.api_url = (settings.AIRTABLE_API_URL if api_url is None else api_url).rstrip("/")
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_token and self.base_id)

    async def list_records(self, table: str, filter_formula: str) -> dict[str, Any]:
        """Return the raw list-records response for *table*.

        Only the first page is fetched; the ``offset`` key, when present,
        is passed through to the caller untouched.
        """
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.get(
                    f"/{self.base_id}/{table}",
                    params={"filterByFormula": filter_formula},
                    headers={
                        "Authorization": f"Bearer {self.api_token}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as exc:
            raise AirtableError(f"Cannot reach Airtable: {exc}") from exc

        if response.is_error:
            raise AirtableError(
                f"Airtable list {table} failed with {response.status_code}",
                status_code=response.status_code,
            )
        return response.json()
