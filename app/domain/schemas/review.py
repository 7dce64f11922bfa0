"""Pydantic schemas for product reviews."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from app.domain.schemas.base import APIModel


class ReviewCreate(APIModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewRead(APIModel):
    id: int
    rating: int
    comment: Optional[str] = None
    user_id: int
    product_id: int
    created_at: Optional[datetime] = None
