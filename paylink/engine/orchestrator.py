"""
Approval orchestrator: the payment use-case layer.

Two entry points:

  create_transaction  resolve adapter → round amount to the currency →
                      create payment link → persist a `new` transaction →
                      notify
  advance_status      state machine check → (entering `completed` only)
                      claim the row → resolve approval → map outcome to
                      the final status → commit → notify

The approval outcome mapping is the heart of the service:

  Success         → completed, result "success"
  Failed          → failed (terminal), result "error" with the provider message
  RequiresAction  → no status change, result "requires_action" with the
                    payload the payer must act on; a later call with the
                    same transaction resolves it

Every other error (unknown provider, provider unavailable, invalid request)
propagates and leaves status untouched.

Only one request may talk to the gateway about a transaction at a time.
Before resolve_approval the row is claimed with a compare-and-write on
(id, version, no live claim); a duplicate approval loses that write and gets
TransactionConflict without reaching the gateway. Status writes are
compare-and-write on the version as well, so a writer holding a stale row
never overwrites the winner.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from paylink.audit.notifier import TransactionNotifier
from paylink.config import settings
from paylink.engine import state_machine
from paylink.engine.errors import ApprovalFailed, InvalidTransition, TransactionConflict
from paylink.models.enums import TransactionStatus
from paylink.models.transaction import Transaction
from paylink.providers.base import Failed, PaymentLinkRequest, RequiresAction, Success
from paylink.providers.money import normalize_amount
from paylink.providers.registry import ProviderRegistry

logger = logging.getLogger("paylink.orchestrator")

COMPLETED_MESSAGE = "Transaction completed successfully"
STATUS_UPDATED_MESSAGE = "Transaction status updated successfully"
REQUIRES_ACTION_MESSAGE = "You need to complete one more action"
MISSING_REFERENCE_MESSAGE = "Missing provider reference"


@dataclass
class CreateTransactionRequest:
    """Validated input for creating a payment link."""

    amount: Decimal
    currency: str
    provider: str
    owner_id: Optional[str] = None
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    payment_method: Optional[str] = None


@dataclass
class AdvanceResult:
    """Outcome of advance_status, discriminated by ``status``."""

    status: str  # "success", "requires_action", "error"
    transaction: Transaction
    message: Optional[str] = None
    action: Any = None
    error: Optional[str] = None
    payer_name: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None

    @classmethod
    def success(
        cls,
        transaction: Transaction,
        outcome: Optional[Success] = None,
        message: str = STATUS_UPDATED_MESSAGE,
    ) -> "AdvanceResult":
        if outcome is None:
            return cls(status="success", transaction=transaction, message=message)
        return cls(
            status="success",
            transaction=transaction,
            message=message,
            payer_name=outcome.payer_name,
            amount=outcome.amount,
            currency=outcome.currency,
        )

    @classmethod
    def requires_action(cls, transaction: Transaction, action: Any) -> "AdvanceResult":
        return cls(status="requires_action", transaction=transaction, message=REQUIRES_ACTION_MESSAGE, action=action)

    @classmethod
    def declined(cls, transaction: Transaction, message: str) -> "AdvanceResult":
        return cls(status="error", transaction=transaction, error=message)

    def to_dict(self) -> dict[str, Any]:
        """
        Render the caller-facing result shape.

            success          {status, message, transaction, [payer_name, amount, currency]}
            requires_action  {status, message, action}
            error            {status, error}
        """
        if self.status == "error":
            return {"status": "error", "error": self.error}
        if self.status == "requires_action":
            return {"status": "requires_action", "message": self.message, "action": self.action}

        body: dict[str, Any] = {
            "status": "success",
            "message": self.message,
            "transaction": self.transaction.to_dict(),
        }
        for key in ("payer_name", "amount", "currency"):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body


async def create_transaction(
    session: AsyncSession,
    request: CreateTransactionRequest,
    registry: ProviderRegistry,
    notifier: TransactionNotifier,
) -> Transaction:
    """
    Create a payment link and persist a `new` transaction for it.

    The amount is rounded to the currency's precision once, and that value
    is both sent to the gateway and stored. Nothing is written unless the
    provider returned a link.

    Raises:
        UnknownProvider: ``request.provider`` is not registered.
        InvalidRequest: The adapter rejected amount, currency or payment details.
        ProviderUnavailable: The gateway could not be reached.
    """
    provider = registry.resolve(request.provider)
    currency = request.currency.upper()
    amount = normalize_amount(request.amount, currency)

    link = await provider.create_payment_link(PaymentLinkRequest(
        amount=amount,
        currency=currency,
        return_url=request.return_url or settings.return_url.format(provider=request.provider),
        cancel_url=request.cancel_url or settings.cancel_url.format(provider=request.provider),
        payment_method=request.payment_method,
    ))

    transaction = Transaction(
        amount=amount,
        currency=currency,
        provider=request.provider,
        owner_id=request.owner_id,
        status=TransactionStatus.NEW.value,
        payment_link=link.url,
        pending_reference=link.reference,
    )
    session.add(transaction)
    await session.commit()

    logger.info(
        "Transaction %s created via %s for %s %s",
        transaction.id,
        request.provider,
        amount,
        currency,
    )
    await notifier.notify_created(transaction)
    return transaction


async def advance_status(
    session: AsyncSession,
    transaction: Transaction,
    target: TransactionStatus | str,
    registry: ProviderRegistry,
    notifier: TransactionNotifier,
) -> AdvanceResult:
    """
    Move a transaction towards ``target``, consulting its provider when completing.

    Raises:
        InvalidTransition: ``transaction.status → target`` is not a legal edge.
            No provider is contacted.
        UnknownProvider, ProviderUnavailable, InvalidRequest: From the
            provider; status is unchanged.
        TransactionConflict: The row changed underneath this request, or
            another request is resolving its approval right now.
    """
    try:
        target = TransactionStatus(target)
    except ValueError:
        raise InvalidTransition(transaction.status, target) from None

    if target != TransactionStatus.COMPLETED:
        if transaction.approval_in_flight(settings.approval_lease_seconds):
            raise TransactionConflict(transaction.id)
        await _commit_status(session, notifier, transaction, target)
        return AdvanceResult.success(transaction)

    # Validate before any side effect at the gateway
    state_machine.check_transition(transaction.status, target)

    if not transaction.pending_reference:
        outcome = Failed(MISSING_REFERENCE_MESSAGE)
    else:
        provider = registry.resolve(transaction.provider)
        await _claim_approval(session, transaction)
        try:
            outcome = await provider.resolve_approval(transaction.pending_reference)
        except ApprovalFailed as e:
            outcome = Failed(e.message)
        except Exception:
            await _release_approval(session, transaction)
            raise

    if isinstance(outcome, RequiresAction):
        await _release_approval(session, transaction)
        logger.info("Transaction %s requires payer action (%s)", transaction.id, transaction.provider)
        return AdvanceResult.requires_action(transaction, outcome.action)

    if isinstance(outcome, Success):
        await _commit_status(session, notifier, transaction, TransactionStatus.COMPLETED)
        return AdvanceResult.success(transaction, outcome, message=COMPLETED_MESSAGE)

    if isinstance(outcome, Failed):
        logger.warning("Transaction %s declined by %s: %s", transaction.id, transaction.provider, outcome.message)
        await _commit_status(session, notifier, transaction, TransactionStatus.FAILED)
        return AdvanceResult.declined(transaction, outcome.message)

    await _release_approval(session, transaction)
    raise TypeError(f"{transaction.provider} returned an unsupported outcome: {outcome!r}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _claim_approval(session: AsyncSession, transaction: Transaction) -> None:
    """
    Mark the row as having an approval in flight, or raise TransactionConflict.

    Succeeds only if the stored version still matches ours and no other
    request holds an unexpired claim.
    """
    transaction_id = transaction.id
    version = transaction.version
    now = _utcnow()
    lease_cutoff = now - timedelta(seconds=settings.approval_lease_seconds)

    result = await session.execute(
        update(Transaction)
        .where(
            Transaction.id == transaction_id,
            Transaction.version == version,
            Transaction.status == TransactionStatus.PROCESSING.value,
            or_(
                Transaction.approval_claimed_at.is_(None),
                Transaction.approval_claimed_at < lease_cutoff,
            ),
        )
        .values(version=version + 1, approval_claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        logger.warning("Transaction %s already has an approval in flight or changed underneath us", transaction_id)
        raise TransactionConflict(transaction_id)

    await session.commit()
    set_committed_value(transaction, "version", version + 1)
    set_committed_value(transaction, "approval_claimed_at", now)


async def _release_approval(session: AsyncSession, transaction: Transaction) -> None:
    """Drop our claim without touching status."""
    transaction_id = transaction.id
    version = transaction.version

    result = await session.execute(
        update(Transaction)
        .where(Transaction.id == transaction_id, Transaction.version == version)
        .values(version=version + 1, approval_claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    if result.rowcount != 1:
        # Our lease expired and another request took the row over
        logger.warning("Transaction %s approval claim was taken over before release", transaction_id)
        return
    set_committed_value(transaction, "version", version + 1)
    set_committed_value(transaction, "approval_claimed_at", None)


async def _commit_status(
    session: AsyncSession,
    notifier: TransactionNotifier,
    transaction: Transaction,
    target: TransactionStatus,
) -> None:
    """Apply ``target`` through the state machine and persist it atomically, ending any claim."""
    transaction_id = transaction.id
    old_status = transaction.status

    state_machine.apply(transaction, target)
    transaction.approval_claimed_at = None
    try:
        await session.commit()
    except StaleDataError as e:
        await session.rollback()
        logger.warning("Transaction %s lost a concurrent status update (%s -> %s)", transaction_id, old_status, target.value)
        raise TransactionConflict(transaction_id) from e

    logger.info("Transaction %s status %s -> %s", transaction_id, old_status, target.value)
    await notifier.notify_status_changed(transaction, old_status, target.value)
