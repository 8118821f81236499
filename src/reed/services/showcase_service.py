"""Portfolio and revenue showcase records served from Airtable."""

from __future__ import annotations

import re
from typing import Any

from fastapi import HTTPException

from reed.integrations.airtable_client import AirtableClient

ALLOWED_TABLES = ("Portfolio", "Revenue")
ACTIVE_FILTER = "{active}=1"

_NON_LETTERS = re.compile(r"[^a-zA-Z]")


def build_filter_formula(table: str, category: str | None) -> str:
    """Return the filterByFormula for *table*.

    Categories only exist on Portfolio.  Everything but ASCII letters is
    stripped from the category before it is embedded in the formula.
    """
    if category and table == "Portfolio":
        safe_category = _NON_LETTERS.sub("", category)
        return f'AND({ACTIVE_FILTER},{{category}}="{safe_category}")'
    return ACTIVE_FILTER


async def fetch_showcase(
    airtable: AirtableClient,
    table: str | None,
    category: str | None,
) -> dict[str, Any]:
    """Return the active records of an allowed table."""
    if not table or table not in ALLOWED_TABLES:
        raise HTTPException(status_code=400, detail="Invalid table")
    return await airtable.list_records(table, build_filter_formula(table, category))
