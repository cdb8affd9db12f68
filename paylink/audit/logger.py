"""
Immutable audit trail for payment transactions.

Every creation and status change gets an append-only audit log entry with:
  - Transaction ID
  - Action (what happened)
  - Details (amount, provider, old/new status)
  - Timestamp (UTC)

These records are never modified or deleted.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from paylink.models.transaction import AuditLog

logger = logging.getLogger("paylink.audit")


async def log_event(
    session: AsyncSession,
    action: str,
    transaction_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Create an immutable audit log entry.

    Args:
        session: Database session.
        action: What happened (e.g. "transaction_created", "status_changed").
        transaction_id: The transaction this event relates to.
        details: Arbitrary context (serialized to JSON).

    Returns:
        The created AuditLog record (added to the session, not committed).
    """
    entry = AuditLog(
        transaction_id=transaction_id,
        action=action,
        details=json.dumps(details, default=str) if details else None,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    logger.debug(
        "AUDIT | transaction=%s action=%s | %s",
        transaction_id or "-",
        action,
        json.dumps(details, default=str)[:200] if details else "",
    )
    return entry
