"""Image-model API key storage.

The key is read from the ``GEMINI_API_KEY`` secret first and from the
``system_config`` table second, so admins can rotate it without a deploy.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from reed.config import settings
from reed.integrations.supabase_rest import SupabaseClient, SupabaseError

log = structlog.get_logger()

CONFIG_TABLE = "system_config"
API_KEY_CONFIG_KEY = "gemini_api_key"


async def resolve_api_key(supabase: SupabaseClient) -> tuple[str, str] | None:
    """Return ``(api_key, source)`` or None when no key is available."""
    if settings.GEMINI_API_KEY:
        return settings.GEMINI_API_KEY, "secret"

    if not supabase.configured:
        return None

    try:
        row = await supabase.select_one(
            CONFIG_TABLE, "value", {"key": f"eq.{API_KEY_CONFIG_KEY}"},
        )
    except SupabaseError as exc:
        log.warning("api_key_lookup_failed", error=str(exc), status=exc.status_code)
        return None

    if row and row.get("value"):
        return row["value"], "database"
    return None


async def store_api_key(supabase: SupabaseClient, api_key: str) -> None:
    """Upsert the key into system_config. Raises SupabaseError on failure."""
    await supabase.upsert(
        CONFIG_TABLE,
        {
            "key": API_KEY_CONFIG_KEY,
            "value": api_key,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        },
        on_conflict="key",
    )
