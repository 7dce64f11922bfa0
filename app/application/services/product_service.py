"""Product service — business logic for catalog queries and seller listings."""

import structlog

from app.core.exceptions import EntityNotFoundException, ForbiddenException
from app.domain.models.product import Product
from app.domain.models.user import Role, User
from app.domain.repositories.product_repository import ProductRepository
from app.domain.schemas.product import ProductCreate, ProductFilter

logger = structlog.get_logger(__name__)


def get_products(repo: ProductRepository, filters: ProductFilter) -> dict:
    """Get products with filtering and pagination."""
    return repo.get_with_filters(filters)


def get_product(repo: ProductRepository, product_id: int) -> Product:
    product = repo.get_by_id(product_id)
    if product is None:
        raise EntityNotFoundException("Product not found", {"id": product_id})
    return product


def get_seller_products(repo: ProductRepository, seller: User, page: int = 1, page_size: int = 50) -> dict:
    """Listings owned by one seller."""
    return repo.get_with_filters(ProductFilter(seller_id=seller.id, page=page, page_size=page_size))


def create_product(
    repo: ProductRepository,
    seller: User,
    data: ProductCreate,
    image_urls: list[str],
) -> Product:
    """Create a listing; only SELLER accounts may own products."""
    if seller.role != Role.SELLER:
        raise ForbiddenException("Only sellers can add products")

    product = repo.create_listing(
        seller_id=seller.id,
        data={
            "title": data.title,
            "description": data.description,
            "price": data.price,
            "country": data.country,
            "stock": data.stock,
            "images": list(image_urls),
        },
        categories=data.categories,
    )
    logger.info("Product created", product_id=product.id, seller_id=seller.id)
    return product
