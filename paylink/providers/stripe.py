"""
Stripe PaymentIntents adapter.

Synchronous-approval gateway with a client-side follow-up: confirming an
intent either succeeds, fails, or returns ``requires_action`` when the card
issuer demands 3-D Secure. In that last case the payer completes the
challenge with Stripe.js and the merchant confirms again with the same
intent id, which then reports the final state.

Requests are form-encoded with a bearer secret key. Amounts travel in minor
units.
"""

from typing import Any, Optional

import httpx

from paylink.config import StripeSettings
from paylink.engine.errors import InvalidRequest, ProviderUnavailable
from paylink.providers.base import (
    Failed,
    PaymentLink,
    PaymentLinkRequest,
    PaymentProvider,
    ProviderOutcome,
    RequiresAction,
    Success,
    validate_link_request,
)
from paylink.providers.http import ProviderHttpClient
from paylink.providers.money import from_minor_units, to_minor_units

CONFIRM_FAILED_MESSAGE = "We cannot capture the payment. Try again, please"


class StripeProvider(PaymentProvider):
    """Creates manual-confirmation payment intents and confirms them on approval."""

    def __init__(
        self,
        config: StripeSettings,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not config.base_uri:
            raise ValueError("Stripe base_uri is not configured")
        self._publishable_key = config.key
        self._http = ProviderHttpClient(
            self.name,
            config.base_uri,
            timeout=timeout,
            headers={"Authorization": f"Bearer {config.secret}"},
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "stripe"

    async def create_payment_link(self, request: PaymentLinkRequest) -> PaymentLink:
        validate_link_request(request)
        if not request.payment_method:
            raise InvalidRequest("The payment_method field is required for stripe")

        response = await self._http.send(
            "POST",
            "/v1/payment_intents",
            data={
                "amount": to_minor_units(request.amount, request.currency),
                "currency": request.currency.lower(),
                "payment_method": request.payment_method,
                "confirmation_method": "manual",
            },
        )
        intent = self._http.json(response)
        if response.is_client_error:
            raise InvalidRequest(_error_message(intent, "Stripe rejected the payment intent"))
        if not intent.get("id"):
            raise ProviderUnavailable(self.name, "payment intent response has no id")

        # The payer lands on the merchant's approval page, which confirms the intent
        url = httpx.URL(request.return_url).copy_merge_params({"payment_intent": intent["id"]})
        return PaymentLink(url=str(url), reference=str(intent["id"]))

    async def resolve_approval(self, reference: Optional[str]) -> ProviderOutcome:
        if not reference:
            return Failed(CONFIRM_FAILED_MESSAGE)

        response = await self._http.send(
            "POST",
            f"/v1/payment_intents/{reference}/confirm",
            data={"expand[]": "latest_charge"},
        )
        confirmation = self._http.json(response)

        # Declines, unknown intents and already-finalized intents are 4xx
        if response.is_client_error:
            return Failed(_error_message(confirmation, CONFIRM_FAILED_MESSAGE))

        status = confirmation.get("status")

        if status == "requires_action":
            next_action = confirmation.get("next_action") or {}
            return RequiresAction(action={
                "type": next_action.get("type", "use_stripe_sdk"),
                "client_secret": confirmation.get("client_secret"),
                "redirect_url": (next_action.get("redirect_to_url") or {}).get("url"),
                "publishable_key": self._publishable_key or None,
            })

        if status == "succeeded":
            currency = (confirmation.get("currency") or "").upper() or None
            amount = confirmation.get("amount_received", confirmation.get("amount"))
            return Success(
                payer_name=_billing_name(confirmation),
                amount=from_minor_units(amount, currency) if amount is not None and currency else None,
                currency=currency,
            )

        last_error = confirmation.get("last_payment_error") or {}
        return Failed(last_error.get("message") or CONFIRM_FAILED_MESSAGE)

    async def aclose(self) -> None:
        await self._http.aclose()


def _billing_name(intent: dict[str, Any]) -> Optional[str]:
    """Payer name from the expanded latest charge, or the legacy charges list."""
    charge = intent.get("latest_charge")
    if not isinstance(charge, dict):
        charges = (intent.get("charges") or {}).get("data") or []
        charge = charges[0] if charges else {}
    return (charge.get("billing_details") or {}).get("name")


def _error_message(body: dict[str, Any], default: str) -> str:
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message") or error.get("code") or default
    if isinstance(error, str) and error:
        return error
    return default
