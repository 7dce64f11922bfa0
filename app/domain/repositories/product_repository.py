"""
Product Repository Interface.
Defines specific data access operations for Products.
"""

from typing import Any, Dict, List

from app.domain.repositories.base import BaseRepository
from app.domain.models.product import Product
from app.domain.schemas.product import ProductFilter


class ProductRepository(BaseRepository[Product]):
    """Interface for Product-specific operations."""

    def get_with_filters(self, filters: ProductFilter) -> Dict[str, Any]:
        """Get products with filtering and pagination."""
        ...

    def get_many_by_ids(self, ids: List[int]) -> Dict[int, Product]:
        """Get products keyed by id; missing ids are absent from the result."""
        ...

    def create_listing(self, seller_id: int, data: Dict[str, Any], categories: List[str]) -> Product:
        """Create a product owned by the given seller."""
        ...
