"""Checkout service — turns a cart into a hosted payment session."""

from decimal import ROUND_HALF_UP, Decimal

import structlog
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import EntityNotFoundException, ValidationException
from app.domain.repositories.product_repository import ProductRepository
from app.domain.schemas.checkout import CartItem
from app.infrastructure.payment_gateway import CheckoutSession, LineItem, PaymentGateway

logger = structlog.get_logger(__name__)


def to_minor_units(price: Decimal) -> int:
    return int((Decimal(price) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_line_items(repo: ProductRepository, cart: list[CartItem]) -> list[LineItem]:
    """Price the cart from the catalog; client-side prices are ignored."""
    if not cart:
        raise ValidationException("Cart is empty")

    # Merge repeated entries for the same product
    quantities: dict[int, int] = {}
    for item in cart:
        quantities[item.id] = quantities.get(item.id, 0) + item.quantity

    products = repo.get_many_by_ids(list(quantities))
    missing = [pid for pid in quantities if pid not in products]
    if missing:
        raise EntityNotFoundException("Product not found", {"ids": missing})

    line_items = []
    for product_id, quantity in quantities.items():
        product = products[product_id]
        if quantity > product.stock:
            raise ValidationException(
                "Insufficient stock",
                {"id": product_id, "requested": quantity, "available": product.stock},
            )
        line_items.append(
            LineItem(name=product.title, unit_amount=to_minor_units(product.price), quantity=quantity)
        )
    return line_items


async def start_checkout(
    repo: ProductRepository,
    gateway: PaymentGateway,
    cart: list[CartItem],
    frontend_url: str,
) -> CheckoutSession:
    line_items = await run_in_threadpool(build_line_items, repo, cart)
    base = frontend_url.rstrip("/")
    session = await gateway.create_session(
        line_items,
        success_url=f"{base}/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base}/cancel",
    )
    logger.info("Checkout started", session_id=session.session_id, items=len(line_items))
    return session
