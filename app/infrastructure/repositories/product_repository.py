"""
SQLAlchemy Implementation of Product Repository.
"""

from typing import Any, Dict, List

from app.domain.models.product import Product, ProductCategory
from app.domain.repositories.product_repository import ProductRepository
from app.domain.schemas.product import ProductFilter
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyProductRepository(SQLAlchemyRepository[Product], ProductRepository):
    """Product repository implementation using SQLAlchemy."""

    def get_with_filters(self, filters: ProductFilter) -> Dict[str, Any]:
        """Get products with filtering and pagination."""
        query = self.db.query(Product)

        if filters.search:
            query = query.filter(Product.title.ilike(f"%{filters.search.strip()}%"))
        if filters.country:
            query = query.filter(Product.country == filters.country)
        if filters.category:
            query = query.filter(
                Product.category_links.any(ProductCategory.name == filters.category)
            )
        if filters.min_price is not None:
            query = query.filter(Product.price >= filters.min_price)
        if filters.max_price is not None:
            query = query.filter(Product.price <= filters.max_price)
        if filters.seller_id is not None:
            query = query.filter(Product.seller_id == filters.seller_id)

        total = query.count()
        offset = (filters.page - 1) * filters.page_size
        products = (
            query.order_by(Product.created_at.desc(), Product.id.desc())
            .offset(offset)
            .limit(filters.page_size)
            .all()
        )

        return {
            "items": products,
            "total": total,
            "page": filters.page,
            "page_size": filters.page_size,
            "total_pages": (total + filters.page_size - 1) // filters.page_size,
        }

    def get_many_by_ids(self, ids: List[int]) -> Dict[int, Product]:
        if not ids:
            return {}
        products = self.db.query(Product).filter(Product.id.in_(set(ids))).all()
        return {p.id: p for p in products}

    def create_listing(self, seller_id: int, data: Dict[str, Any], categories: List[str]) -> Product:
        product = Product(seller_id=seller_id, **data)
        product.category_links = [ProductCategory(name=name) for name in categories]
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product
