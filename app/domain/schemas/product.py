"""Pydantic schemas for Product domain."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from app.domain.schemas.base import APIModel


class ProductCreate(APIModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    country: str = Field(..., min_length=1, max_length=100)
    stock: int = Field(0, ge=0)
    categories: list[str] = Field(default_factory=list)

    @field_validator("title", "description", "country")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Field cannot be blank")
        return value

    @field_validator("categories")
    @classmethod
    def _dedupe_categories(cls, value: list[str]) -> list[str]:
        return sorted({c.strip() for c in value if c and c.strip()})


class ProductRead(APIModel):
    id: int
    title: str
    description: str
    price: Decimal
    images: list[str] = []
    country: Optional[str] = None
    categories: list[str] = []
    stock: int
    seller_id: int
    created_at: Optional[datetime] = None


class ProductFilter(APIModel):
    search: Optional[str] = None
    country: Optional[str] = None
    category: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    seller_id: Optional[int] = None
    page: int = 1
    page_size: int = 20


class ProductPage(APIModel):
    items: list[ProductRead]
    total: int
    page: int
    page_size: int
    total_pages: int
