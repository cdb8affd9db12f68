"""
Payment provider interface.

Every gateway integration (PayPal, Stripe, the sample gateway) implements
this interface. Each adapter owns its authentication scheme and response
decoding, but approval results always come back as one of the three
ProviderOutcome variants, which is what keeps the orchestrator
provider-agnostic.

Adapters hold no per-request state: the correlation reference for a
payment lives on the Transaction and is passed back in explicitly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Union

from paylink.engine.errors import InvalidRequest


@dataclass(frozen=True)
class PaymentLinkRequest:
    """Request to create a payer-facing payment link."""

    amount: Decimal
    currency: str  # ISO 4217
    return_url: str
    cancel_url: str
    payment_method: Optional[str] = None  # Gateway payment method id (Stripe)


@dataclass(frozen=True)
class PaymentLink:
    """A created payment link and the gateway's correlation reference."""

    url: str
    reference: str


@dataclass(frozen=True)
class Success:
    payer_name: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class Failed:
    message: str


@dataclass(frozen=True)
class RequiresAction:
    action: Any  # Redirect URL or challenge descriptor for the payer


ProviderOutcome = Union[Success, Failed, RequiresAction]


class PaymentProvider(ABC):
    """Abstract base class for payment providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name (e.g. 'paypal')."""
        ...

    @abstractmethod
    async def create_payment_link(self, request: PaymentLinkRequest) -> PaymentLink:
        """
        Create a payment at the gateway and return where to send the payer.

        Raises:
            InvalidRequest: Amount, currency or payment details rejected.
            ProviderUnavailable: Transport failure, timeout or 5xx.
        """
        ...

    @abstractmethod
    async def resolve_approval(self, reference: Optional[str]) -> ProviderOutcome:
        """
        Finalize approval for a correlation reference.

        Must return Failed (not raise) for a missing, stale or already
        finalized reference, and must be safe to call again with the same
        reference after a RequiresAction outcome.

        Raises:
            ProviderUnavailable: Transport failure, timeout or 5xx.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""
        return None


def validate_link_request(request: PaymentLinkRequest) -> None:
    """Reject amounts and currencies no gateway would accept."""
    if request.amount is None or Decimal(str(request.amount)) <= 0:
        raise InvalidRequest(f"Invalid amount: {request.amount}")
    currency = request.currency or ""
    if len(currency) != 3 or not currency.isalpha():
        raise InvalidRequest(f"Invalid currency: {request.currency}")
