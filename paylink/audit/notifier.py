"""
Domain event notifications for transactions.

The orchestrator announces "created" and "status changed" events through a
TransactionNotifier. Sinks (log lines, the audit trail, webhooks) consume
them, and nothing in the payment core depends on delivery: a sink that
raises is logged and skipped, never surfaced to the caller.
"""

import logging
from typing import Optional, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paylink.audit.logger import log_event
from paylink.models.enums import AuditAction
from paylink.models.transaction import Transaction

logger = logging.getLogger("paylink.events")


class NotificationSink(Protocol):
    async def transaction_created(self, transaction: Transaction) -> None: ...

    async def status_changed(self, transaction: Transaction, old_status: str, new_status: str) -> None: ...


class LoggingSink:
    """Writes one structured log line per event."""

    async def transaction_created(self, transaction: Transaction) -> None:
        logger.info(
            "Transaction created | id=%s provider=%s amount=%s %s owner=%s",
            transaction.id,
            transaction.provider,
            transaction.amount,
            transaction.currency,
            transaction.owner_id or "-",
        )

    async def status_changed(self, transaction: Transaction, old_status: str, new_status: str) -> None:
        logger.info(
            "Transaction status updated | id=%s %s -> %s",
            transaction.id,
            old_status,
            new_status,
        )


class AuditTrailSink:
    """Persists each event as an AuditLog row in a session of its own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def transaction_created(self, transaction: Transaction) -> None:
        await self._record(AuditAction.TRANSACTION_CREATED, transaction.id, {
            "provider": transaction.provider,
            "amount": transaction.amount,
            "currency": transaction.currency,
            "owner_id": transaction.owner_id,
        })

    async def status_changed(self, transaction: Transaction, old_status: str, new_status: str) -> None:
        await self._record(AuditAction.STATUS_CHANGED, transaction.id, {
            "from": old_status,
            "to": new_status,
        })

    async def _record(self, action: AuditAction, transaction_id: str, details: dict) -> None:
        async with self._session_factory() as session:
            await log_event(session, action.value, transaction_id=transaction_id, details=details)
            await session.commit()


class TransactionNotifier:
    """Fans events out to every sink; sink failures stop at this boundary."""

    def __init__(self, sinks: Optional[Sequence[NotificationSink]] = None):
        self._sinks = list(sinks) if sinks is not None else [LoggingSink()]

    async def notify_created(self, transaction: Transaction) -> None:
        for sink in self._sinks:
            try:
                await sink.transaction_created(transaction)
            except Exception:
                logger.exception(
                    "Notification sink %s failed on transaction_created for %s",
                    type(sink).__name__,
                    transaction.id,
                )

    async def notify_status_changed(self, transaction: Transaction, old_status: str, new_status: str) -> None:
        for sink in self._sinks:
            try:
                await sink.status_changed(transaction, old_status, new_status)
            except Exception:
                logger.exception(
                    "Notification sink %s failed on status_changed for %s",
                    type(sink).__name__,
                    transaction.id,
                )
