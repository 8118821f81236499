"""Signup guard -- IP/device checks against multi-account abuse.

Both actions fail open: a missing configuration, a failing stored
procedure or an unreachable database always yields ``{"allowed": true}``.
The verdict itself comes from the ``check_signup_allowed`` procedure, which
is defined in the database.
"""

from __future__ import annotations

from typing import Any

import structlog

from reed.integrations.supabase_rest import SupabaseClient, SupabaseError

log = structlog.get_logger()

ALLOWED = {"allowed": True}
USER_AGENT_MAX_LENGTH = 500


async def check_signup(
    supabase: SupabaseClient,
    ip: str,
    fingerprint: str | None,
) -> Any:
    """Return the procedure's verdict for this IP/device, or ALLOWED."""
    try:
        return await supabase.rpc(
            "check_signup_allowed",
            {"p_ip": ip, "p_fingerprint": fingerprint},
        )
    except SupabaseError as exc:
        log.error(
            "signup_check_rpc_failed",
            error=str(exc),
            status=exc.status_code,
            body=exc.body,
        )
        return dict(ALLOWED)


async def log_signup(
    supabase: SupabaseClient,
    ip: str,
    fingerprint: str | None,
    email: str | None,
    user_agent: str,
) -> dict[str, bool]:
    """Append a signup_attempts row. Failures are logged, never raised."""
    try:
        await supabase.insert(
            "signup_attempts",
            {
                "ip_address": ip,
                "device_fingerprint": fingerprint,
                "email": email,
                "user_agent": user_agent[:USER_AGENT_MAX_LENGTH],
                "success": True,
            },
        )
    except SupabaseError as exc:
        log.error("signup_log_failed", error=str(exc), body=exc.body)
    return {"logged": True}
