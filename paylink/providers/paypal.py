"""
PayPal Orders v2 adapter.

Immediate-capture gateway: the payer approves the order on PayPal, then a
single capture call either moves the money or is declined. There is no
intermediate "requires action" state, so approvals map straight to
Success or Failed.

Authentication uses HTTP Basic credentials derived from the client id and
secret.
"""

from typing import Any, Optional

import httpx

from paylink.config import PayPalSettings
from paylink.engine.errors import InvalidRequest, ProviderUnavailable
from paylink.providers.base import (
    Failed,
    PaymentLink,
    PaymentLinkRequest,
    PaymentProvider,
    ProviderOutcome,
    Success,
    validate_link_request,
)
from paylink.providers.http import ProviderHttpClient
from paylink.providers.money import normalize_amount

CAPTURE_FAILED_MESSAGE = "We cannot capture the payment. Try again, please"
APPROVAL_RELS = ("approve", "payer-action")
ALREADY_CAPTURED_ISSUE = "ORDER_ALREADY_CAPTURED"


class PayPalProvider(PaymentProvider):
    """Creates PayPal orders and captures them once the payer approves."""

    def __init__(
        self,
        config: PayPalSettings,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not config.base_uri:
            raise ValueError("PayPal base_uri is not configured")
        self._brand_name = config.brand_name
        self._http = ProviderHttpClient(
            self.name,
            config.base_uri,
            timeout=timeout,
            auth=httpx.BasicAuth(config.client_id, config.client_secret),
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "paypal"

    async def create_payment_link(self, request: PaymentLinkRequest) -> PaymentLink:
        validate_link_request(request)
        currency = request.currency.upper()

        response = await self._http.send(
            "POST",
            "/v2/checkout/orders",
            json={
                "intent": "CAPTURE",
                "purchase_units": [
                    {
                        "amount": {
                            "currency_code": currency,
                            "value": str(normalize_amount(request.amount, currency)),
                        }
                    }
                ],
                "application_context": {
                    "brand_name": self._brand_name,
                    "shipping_preference": "NO_SHIPPING",
                    "user_action": "PAY_NOW",
                    "return_url": request.return_url,
                    "cancel_url": request.cancel_url,
                },
            },
        )
        order = self._http.json(response)
        if response.is_client_error:
            raise InvalidRequest(_error_message(order, "PayPal rejected the order"))

        approve = next(
            (link.get("href") for link in order.get("links") or [] if link.get("rel") in APPROVAL_RELS),
            None,
        )
        if not approve or not order.get("id"):
            raise ProviderUnavailable(self.name, "order response has no approval link")

        return PaymentLink(url=approve, reference=str(order["id"]))

    async def resolve_approval(self, reference: Optional[str]) -> ProviderOutcome:
        if not reference:
            return Failed(CAPTURE_FAILED_MESSAGE)

        response = await self._http.send(
            "POST",
            f"/v2/checkout/orders/{reference}/capture",
            headers={"Content-Type": "application/json"},
        )
        payment = self._http.json(response)

        # A capture that already went through must not be reported as a decline
        if response.is_client_error and _has_issue(payment, ALREADY_CAPTURED_ISSUE):
            return await self._order_outcome(reference)

        # Unknown, expired or otherwise unusable orders come back as 4xx
        if response.is_client_error or not payment or payment.get("error"):
            return Failed(_error_message(payment, CAPTURE_FAILED_MESSAGE))

        return _capture_outcome(payment)

    async def _order_outcome(self, reference: str) -> ProviderOutcome:
        """Read the order back and report what actually happened to it."""
        response = await self._http.send("GET", f"/v2/checkout/orders/{reference}")
        order = self._http.json(response)
        if response.is_client_error:
            return Failed(_error_message(order, CAPTURE_FAILED_MESSAGE))
        return _capture_outcome(order)

    async def aclose(self) -> None:
        await self._http.aclose()


def _capture_outcome(payment: dict[str, Any]) -> ProviderOutcome:
    """Map a captured order body to Success, anything short of COMPLETED to Failed."""
    if payment.get("status") != "COMPLETED":
        return Failed(CAPTURE_FAILED_MESSAGE)

    # The order is captured at this point; missing detail fields must not turn it into a failure
    amount = currency = None
    try:
        captured = payment["purchase_units"][0]["payments"]["captures"][0]["amount"]
        currency = captured["currency_code"]
        amount = normalize_amount(captured["value"], currency)
    except (KeyError, IndexError, TypeError):
        pass

    name = ((payment.get("payer") or {}).get("name") or {}).get("given_name")
    return Success(payer_name=name, amount=amount, currency=currency)


def _has_issue(body: dict[str, Any], issue: str) -> bool:
    return any(isinstance(d, dict) and d.get("issue") == issue for d in body.get("details") or [])


def _error_message(body: dict[str, Any], default: str) -> str:
    """Pick the most specific human-readable message from a PayPal error body."""
    error = body.get("error")
    if isinstance(error, str) and error:
        return error
    for detail in body.get("details") or []:
        if isinstance(detail, dict) and (detail.get("description") or detail.get("issue")):
            return detail.get("description") or detail["issue"]
    return body.get("message") or body.get("error_description") or default
