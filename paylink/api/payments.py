"""
Payment link endpoint.

POST /payment-links — Create a payment link with a provider and record a `new` transaction.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from paylink.api.dependencies import Principal, get_notifier, get_registry, require_scope
from paylink.api.transactions import TransactionDetail, transaction_to_detail
from paylink.audit.notifier import TransactionNotifier
from paylink.database import get_session
from paylink.engine.orchestrator import CreateTransactionRequest, create_transaction
from paylink.providers.registry import ProviderRegistry

router = APIRouter(prefix="/payment-links", tags=["payments"])


class PaymentLinkBody(BaseModel):
    amount: Decimal = Field(gt=0, description="Amount in major units, e.g. 100.00")
    currency: str = Field(pattern=r"^[A-Za-z]{3}$", description="ISO 4217 code")
    provider: str = Field(
        min_length=1,
        validation_alias=AliasChoices("provider", "payment_platform"),
        description="Registered provider name (paypal, stripe, sample)",
    )
    payment_method: Optional[str] = None
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None


class PaymentLinkResponse(BaseModel):
    status: str
    message: str
    transaction: TransactionDetail


@router.post("", response_model=PaymentLinkResponse, status_code=201)
async def create_payment_link(
    body: PaymentLinkBody,
    session: AsyncSession = Depends(get_session),
    registry: ProviderRegistry = Depends(get_registry),
    notifier: TransactionNotifier = Depends(get_notifier),
    principal: Principal = Depends(require_scope("create-transaction")),
):
    """
    Create a payment link.

    The provider is called first; the transaction is only recorded once a
    link exists, so a failed call leaves nothing behind.
    """
    transaction = await create_transaction(
        session,
        CreateTransactionRequest(
            amount=body.amount,
            currency=body.currency,
            provider=body.provider,
            owner_id=principal.owner_id,
            return_url=body.return_url,
            cancel_url=body.cancel_url,
            payment_method=body.payment_method,
        ),
        registry,
        notifier,
    )
    return PaymentLinkResponse(
        status="success",
        message="Payment link created successfully",
        transaction=transaction_to_detail(transaction),
    )
