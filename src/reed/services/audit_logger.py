"""Structured JSON audit logger for credit and admin configuration events.

Emits structured log entries via structlog.  Every entry carries an
``audit: true`` flag so production log pipelines can filter on it easily.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog


log = structlog.get_logger()


class AuditLogger:
    """Structured audit logger for ledger and configuration changes.

    All methods are synchronous -- they only emit log lines and perform
    no I/O beyond writing to the configured structlog sink.
    """

    # ------------------------------------------------------------------
    # Credit event
    # ------------------------------------------------------------------

    def log_credit_event(
        self,
        user_id,
        amount: int,
        txn_type: str,
        previous_balance: int,
        new_balance: int,
        reference_id=None,
    ) -> None:
        """Log a credit balance change (purchase, subscription, refund, ...)."""
        log.info(
            "audit_event",
            event_type="credit_event",
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=str(user_id),
            amount=amount,
            txn_type=txn_type,
            previous_balance=previous_balance,
            new_balance=new_balance,
            reference_id=str(reference_id) if reference_id else None,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Config change
    # ------------------------------------------------------------------

    def log_config_change(self, key: str, source_ip: str | None = None) -> None:
        """Record that a system_config value was replaced. The value is never logged."""
        log.info(
            "audit_event",
            event_type="config_change",
            timestamp=datetime.now(timezone.utc).isoformat(),
            key=key,
            source_ip=source_ip,
            audit=True,
        )


audit = AuditLogger()
