"""Stripe Checkout HTTP client.

Only the hosted checkout session is used: we send line items, Stripe
returns the redirect URL and an opaque session id.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Protocol

import httpx

from app.core.exceptions import UpstreamServiceException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItem:
    name: str
    unit_amount: int  # minor currency units
    quantity: int


@dataclass(frozen=True)
class CheckoutSession:
    url: str
    session_id: str


class PaymentGateway(Protocol):
    async def create_session(
        self, line_items: List[LineItem], success_url: str, cancel_url: str
    ) -> CheckoutSession:
        ...


class StripeCheckoutGateway:
    """Client for the Stripe Checkout Sessions API."""

    def __init__(
        self,
        secret_key: str,
        currency: str = "usd",
        api_base: str = "https://api.stripe.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.currency = currency.lower()
        self.base_url = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _form(self, line_items: List[LineItem], success_url: str, cancel_url: str) -> dict:
        form = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        for i, item in enumerate(line_items):
            prefix = f"line_items[{i}]"
            form[f"{prefix}[price_data][currency]"] = self.currency
            form[f"{prefix}[price_data][product_data][name]"] = item.name
            form[f"{prefix}[price_data][unit_amount]"] = str(item.unit_amount)
            form[f"{prefix}[quantity]"] = str(item.quantity)
        return form

    async def create_session(
        self, line_items: List[LineItem], success_url: str, cancel_url: str
    ) -> CheckoutSession:
        if not self.secret_key:
            raise UpstreamServiceException("Payment provider is not configured")

        url = f"{self.base_url}/v1/checkout/sessions"
        headers = {"Idempotency-Key": uuid.uuid4().hex}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url,
                    data=self._form(line_items, success_url, cancel_url),
                    headers=headers,
                    auth=(self.secret_key, ""),
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            error_text = e.response.text[:200] if e.response.text else "No response body"
            logger.error(f"Stripe API error: {e.response.status_code} - {error_text}")
            raise UpstreamServiceException("Payment provider rejected the checkout request") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Stripe connection error: {e}")
            raise UpstreamServiceException("Payment provider unavailable") from e

        if not body.get("url") or not body.get("id"):
            raise UpstreamServiceException("Payment provider returned an incomplete session")

        logger.info(f"Checkout session created: {body['id']} ({len(line_items)} items)")
        return CheckoutSession(url=body["url"], session_id=body["id"])
