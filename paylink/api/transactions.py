"""
Transaction status and query endpoints.

POST /transactions/{id}/status — Advance a transaction (processing, completed, failed).
GET  /transactions             — List transactions with filters (status, provider).
GET  /transactions/{id}        — Get a single transaction.
GET  /transactions/{id}/trace  — Full audit trail for a transaction.
"""

import json
from decimal import Decimal
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paylink.api.dependencies import Principal, get_notifier, get_principal, get_registry, require_scope
from paylink.audit.notifier import TransactionNotifier
from paylink.database import get_session
from paylink.engine.errors import TransactionNotFound
from paylink.engine.orchestrator import advance_status
from paylink.models.transaction import AuditLog, Transaction
from paylink.providers.registry import ProviderRegistry

router = APIRouter(prefix="/transactions", tags=["transactions"])


class TransactionDetail(BaseModel):
    id: str
    amount: Decimal
    currency: str
    provider: str
    owner_id: Optional[str]
    status: str
    payment_link: str
    created_at: Optional[str]
    updated_at: Optional[str]


class StatusUpdate(BaseModel):
    status: Literal["processing", "completed", "failed"]


class StatusUpdateResponse(BaseModel):
    status: str
    message: Optional[str] = None
    transaction: Optional[TransactionDetail] = None
    action: Optional[Any] = None
    error: Optional[str] = None
    payer_name: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


class AuditEntry(BaseModel):
    id: int
    action: str
    details: Optional[dict] = None
    timestamp: Optional[str]


class TransactionTrace(BaseModel):
    transaction: TransactionDetail
    audit_trail: list[AuditEntry]


def transaction_to_detail(t: Transaction) -> TransactionDetail:
    return TransactionDetail(**t.to_dict())


async def _load_transaction(session: AsyncSession, transaction_id: str, principal: Principal) -> Transaction:
    transaction = await session.get(Transaction, transaction_id)
    if transaction is None:
        raise TransactionNotFound(transaction_id)
    # Tokens only see their own transactions
    if principal.owner_id is not None and transaction.owner_id != principal.owner_id:
        raise TransactionNotFound(transaction_id)
    return transaction


@router.post(
    "/{transaction_id}/status",
    response_model=StatusUpdateResponse,
    response_model_exclude_none=True,
)
async def update_status(
    transaction_id: str,
    body: StatusUpdate,
    session: AsyncSession = Depends(get_session),
    registry: ProviderRegistry = Depends(get_registry),
    notifier: TransactionNotifier = Depends(get_notifier),
    principal: Principal = Depends(require_scope("update-transaction")),
):
    """
    Advance a transaction's status.

    Moving to ``completed`` resolves the approval with the transaction's
    provider and may yield ``success``, ``requires_action`` (the payer must
    act first; the transaction stays ``processing``) or ``error`` (the
    provider declined; the transaction is ``failed``). Illegal transitions
    are rejected with 422 and the attempted ``from``/``to`` statuses.
    """
    transaction = await _load_transaction(session, transaction_id, principal)
    result = await advance_status(session, transaction, body.status, registry, notifier)
    return StatusUpdateResponse(**result.to_dict())


@router.get("", response_model=list[TransactionDetail])
async def list_transactions(
    status: Optional[str] = Query(None, description="Filter by status"),
    provider: Optional[str] = Query(None, description="Filter by provider"),
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
):
    """List transactions with optional filters, newest first."""
    stmt = select(Transaction)

    if status:
        stmt = stmt.where(Transaction.status == status)
    if provider:
        stmt = stmt.where(Transaction.provider == provider)
    if principal.owner_id is not None:
        stmt = stmt.where(Transaction.owner_id == principal.owner_id)

    stmt = stmt.order_by(Transaction.created_at.desc())
    result = await session.execute(stmt)
    return [transaction_to_detail(t) for t in result.scalars().all()]


@router.get("/{transaction_id}", response_model=TransactionDetail)
async def get_transaction(
    transaction_id: str,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
):
    transaction = await _load_transaction(session, transaction_id, principal)
    return transaction_to_detail(transaction)


@router.get("/{transaction_id}/trace", response_model=TransactionTrace)
async def get_transaction_trace(
    transaction_id: str,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
):
    """
    Full audit trail for a transaction.

    Returns the transaction plus every audit log entry, ordered
    chronologically.
    """
    transaction = await _load_transaction(session, transaction_id, principal)

    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.transaction_id == transaction_id)
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
    )

    audit_trail = []
    for log in result.scalars().all():
        details = None
        if log.details:
            try:
                details = json.loads(log.details)
            except (json.JSONDecodeError, TypeError):
                details = {"raw": log.details}

        audit_trail.append(AuditEntry(
            id=log.id,
            action=log.action,
            details=details,
            timestamp=log.timestamp.isoformat() if log.timestamp else None,
        ))

    return TransactionTrace(
        transaction=transaction_to_detail(transaction),
        audit_trail=audit_trail,
    )
