"""Checkout API route — cart to hosted payment session."""

from fastapi import APIRouter, Depends

from app.config import Settings, get_settings
from app.application.services.checkout_service import start_checkout
from app.domain.repositories.product_repository import ProductRepository
from app.domain.schemas.checkout import CheckoutRequest, CheckoutResponse
from app.infrastructure.payment_gateway import PaymentGateway
from app.interfaces.api.deps import rate_limit
from app.interfaces.deps import get_payment_gateway, get_product_repository

router = APIRouter(tags=["Checkout"])


@router.post("/checkout", response_model=CheckoutResponse, dependencies=[Depends(rate_limit("api"))])
async def checkout(
    body: CheckoutRequest,
    repo: ProductRepository = Depends(get_product_repository),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    session = await start_checkout(repo, gateway, body.cart, settings.FRONTEND_URL)
    return CheckoutResponse(redirect_url=session.url, session_id=session.session_id)
