"""Pydantic schemas for cart checkout."""

from pydantic import AliasChoices, Field

from app.domain.schemas.base import APIModel


class CartItem(APIModel):
    # The storefront cart stores whole product objects; only id and quantity matter
    id: int = Field(..., validation_alias=AliasChoices("id", "productId", "product_id"))
    quantity: int = Field(..., ge=1, le=100)


class CheckoutRequest(APIModel):
    cart: list[CartItem]


class CheckoutResponse(APIModel):
    redirect_url: str
    session_id: str
