"""
Sample gateway for integration testing.

Never touches the network: every link gets a fresh reference and every
approval for a non-empty reference succeeds. Useful for exercising the full
create → processing → completed flow without gateway credentials.
"""

import uuid
from typing import Optional

from paylink.config import SampleSettings
from paylink.providers.base import (
    Failed,
    PaymentLink,
    PaymentLinkRequest,
    PaymentProvider,
    ProviderOutcome,
    Success,
    validate_link_request,
)


class SampleProvider(PaymentProvider):
    def __init__(self, config: Optional[SampleSettings] = None):
        self._base_uri = (config or SampleSettings()).base_uri

    @property
    def name(self) -> str:
        return "sample"

    async def create_payment_link(self, request: PaymentLinkRequest) -> PaymentLink:
        validate_link_request(request)
        reference = str(uuid.uuid4())
        return PaymentLink(url=f"{self._base_uri.rstrip('/')}/{reference}", reference=reference)

    async def resolve_approval(self, reference: Optional[str]) -> ProviderOutcome:
        if not reference:
            return Failed("Missing payment reference")
        return Success()
