"""Tests for cart pricing, the checkout route and the Stripe HTTP client."""

from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest
from conftest import auth_headers

from app.application.services.checkout_service import to_minor_units
from app.core.exceptions import UpstreamServiceException
from app.infrastructure.payment_gateway import CheckoutSession, LineItem, StripeCheckoutGateway
from app.interfaces.deps import get_payment_gateway
from app.main import app


class FakeGateway:
    def __init__(self):
        self.calls = []

    async def create_session(self, line_items, success_url, cancel_url):
        self.calls.append((line_items, success_url, cancel_url))
        return CheckoutSession(url="https://checkout.stripe.test/c/pay/cs_test_1", session_id="cs_test_1")


@pytest.fixture
def gateway():
    fake = FakeGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: fake
    return fake


@pytest.fixture
def products(client):
    seller = auth_headers(client, "seller@example.com", role="SELLER")
    rug = client.post(
        "/add-product",
        data={"title": "Rug", "description": "Wool", "price": "19.99", "country": "Morocco", "stock": "3"},
        headers=seller,
    ).json()
    lamp = client.post(
        "/add-product",
        data={"title": "Lamp", "description": "Copper", "price": "45.50", "country": "Egypt", "stock": "1"},
        headers=seller,
    ).json()
    return rug, lamp


@pytest.mark.parametrize(
    "price,expected",
    [("19.99", 1999), ("10.005", 1001), ("0.5", 50), ("45", 4500)],
)
def test_to_minor_units(price, expected):
    assert to_minor_units(Decimal(price)) == expected


class TestCheckoutRoute:
    def test_prices_come_from_the_catalog(self, client, gateway, products):
        rug, lamp = products
        cart = [
            {"id": rug["id"], "quantity": 2, "price": "0.01", "title": "Free rug"},
            {"productId": lamp["id"], "quantity": 1},
        ]
        response = client.post("/checkout", json={"cart": cart})
        assert response.status_code == 200
        assert response.json() == {
            "redirectUrl": "https://checkout.stripe.test/c/pay/cs_test_1",
            "sessionId": "cs_test_1",
        }

        [(line_items, success_url, cancel_url)] = gateway.calls
        assert line_items == [LineItem("Rug", 1999, 2), LineItem("Lamp", 4550, 1)]
        assert success_url == "http://localhost:3000/success?session_id={CHECKOUT_SESSION_ID}"
        assert cancel_url == "http://localhost:3000/cancel"

    def test_repeated_items_are_merged(self, client, gateway, products):
        rug, _ = products
        cart = [{"id": rug["id"], "quantity": 1}, {"id": rug["id"], "quantity": 2}]
        assert client.post("/checkout", json={"cart": cart}).status_code == 200
        assert gateway.calls[0][0] == [LineItem("Rug", 1999, 3)]

    def test_quantity_above_stock(self, client, gateway, products):
        _, lamp = products
        response = client.post("/checkout", json={"cart": [{"id": lamp["id"], "quantity": 2}]})
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"id": lamp["id"], "requested": 2, "available": 1}
        assert gateway.calls == []

    def test_unknown_product(self, client, gateway, products):
        response = client.post("/checkout", json={"cart": [{"id": 999, "quantity": 1}]})
        assert response.status_code == 404
        assert response.json()["error"]["details"] == {"ids": [999]}

    def test_empty_cart(self, client, gateway):
        response = client.post("/checkout", json={"cart": []})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Cart is empty"

    def test_invalid_quantity(self, client, gateway, products):
        rug, _ = products
        assert client.post("/checkout", json={"cart": [{"id": rug["id"], "quantity": 0}]}).status_code == 400

    def test_unconfigured_payment_provider(self, client, products):
        rug, _ = products
        response = client.post("/checkout", json={"cart": [{"id": rug["id"], "quantity": 1}]})
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "UpstreamServiceException"


class TestStripeCheckoutGateway:
    async def test_creates_hosted_session(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"id": "cs_live_9", "url": "https://checkout.stripe.com/pay/cs_live_9"})

        gateway = StripeCheckoutGateway("sk_test_123", transport=httpx.MockTransport(handler))
        session = await gateway.create_session(
            [LineItem("Rug", 1999, 2)], "https://shop.test/success", "https://shop.test/cancel"
        )
        assert session == CheckoutSession("https://checkout.stripe.com/pay/cs_live_9", "cs_live_9")

        request = seen["request"]
        assert request.url == "https://api.stripe.com/v1/checkout/sessions"
        assert request.headers["Authorization"].startswith("Basic ")
        assert request.headers["Idempotency-Key"]
        form = parse_qs(request.content.decode())
        assert form["mode"] == ["payment"]
        assert form["line_items[0][price_data][unit_amount]"] == ["1999"]
        assert form["line_items[0][price_data][currency]"] == ["usd"]
        assert form["line_items[0][price_data][product_data][name]"] == ["Rug"]
        assert form["line_items[0][quantity]"] == ["2"]

    async def test_rejected_request(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(402, json={"error": {"message": "card"}}))
        gateway = StripeCheckoutGateway("sk_test_123", transport=transport)
        with pytest.raises(UpstreamServiceException):
            await gateway.create_session([LineItem("Rug", 1999, 1)], "s", "c")

    async def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        gateway = StripeCheckoutGateway("sk_test_123", transport=httpx.MockTransport(handler))
        with pytest.raises(UpstreamServiceException) as exc_info:
            await gateway.create_session([LineItem("Rug", 1999, 1)], "s", "c")
        assert exc_info.value.message == "Payment provider unavailable"

    async def test_incomplete_session(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "cs_1"}))
        gateway = StripeCheckoutGateway("sk_test_123", transport=transport)
        with pytest.raises(UpstreamServiceException):
            await gateway.create_session([LineItem("Rug", 1999, 1)], "s", "c")
