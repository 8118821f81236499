"""Credit ledger service -- balance reads and paid credit grants.

Balances live in ``user_profiles.credits`` and every grant appends one row
to ``credit_transactions``.  The grant is a read-then-write over PostgREST:
two deliveries for the same user racing each other can lose one increment.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import structlog

from reed.integrations.supabase_rest import SupabaseClient, SupabaseError
from reed.services.audit_logger import audit

log = structlog.get_logger()

PLAN_TYPES = ("free", "starter", "creator", "pro", "studio")
DEFAULT_PAID_PLAN = "starter"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class ProfileNotFoundError(SupabaseError):
    """Raised when no user_profiles row exists for the user id."""


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def parse_credit_amount(value: Any) -> int:
    """Read a credit count from webhook metadata.

    Integers pass through, floats truncate, strings use their leading
    integer ("50", " 50 credits").  Anything else is 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value and abs(value) != float("inf") else 0
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 0
    return 0


def normalize_plan_type(plan_name: Any) -> str:
    """Map a free-form plan name onto the plan enumeration."""
    if isinstance(plan_name, str):
        candidate = plan_name.strip().lower()
        if candidate in PLAN_TYPES:
            return candidate
    return DEFAULT_PAID_PLAN


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

async def get_balance(supabase: SupabaseClient, user_id: str) -> int:
    """Return the stored credit balance for a user."""
    row = await supabase.select_one(
        "user_profiles", "credits", {"id": f"eq.{user_id}"},
    )
    if row is None:
        raise ProfileNotFoundError(f"No profile for user {user_id}")
    return parse_credit_amount(row.get("credits"))


async def add_credits(
    supabase: SupabaseClient,
    user_id: str,
    amount: int,
    metadata: dict[str, Any],
    txn_type: str = "subscription",
    reference_id: str | None = None,
) -> int:
    """Add *amount* credits to a user, activate their plan, log the transaction.

    Returns the new balance.  Raises SupabaseError (or a subclass) when the
    balance cannot be read or written.  A failed transaction insert is only
    logged, because the balance change has already been stored.
    """
    if amount <= 0:
        raise ValueError("Credit amount must be positive")

    previous = await get_balance(supabase, user_id)
    new_balance = previous + amount
    plan_type = normalize_plan_type(metadata.get("plan_name"))

    await supabase.update(
        "user_profiles",
        {"id": f"eq.{user_id}"},
        {
            "credits": new_balance,
            "plan_type": plan_type,
            "subscription_status": "active",
            "updated_at": datetime.now(timezone.utc).isoformat(),
        },
    )

    plan_label = metadata.get("plan_name") or plan_type.capitalize()
    try:
        await supabase.insert(
            "credit_transactions",
            {
                "user_id": user_id,
                "amount": amount,
                "type": txn_type,
                "description": f"{plan_label} plan subscription via Coinbase",
                "metadata": metadata,
            },
        )
    except SupabaseError as exc:
        log.error(
            "credit_transaction_insert_failed",
            user_id=user_id,
            amount=amount,
            error=str(exc),
            body=exc.body,
        )

    audit.log_credit_event(
        user_id=user_id,
        amount=amount,
        txn_type=txn_type,
        previous_balance=previous,
        new_balance=new_balance,
        reference_id=reference_id,
    )
    return new_balance
