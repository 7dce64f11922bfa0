"""Review service — buyers rate products."""

from app.core.exceptions import ForbiddenException
from app.application.services.product_service import get_product
from app.domain.models.review import Review
from app.domain.models.user import Role, User
from app.domain.repositories.product_repository import ProductRepository
from app.domain.schemas.review import ReviewCreate
from app.infrastructure.repositories.review_repository import SQLAlchemyReviewRepository


def create_review(
    reviews: SQLAlchemyReviewRepository,
    products: ProductRepository,
    user: User,
    product_id: int,
    data: ReviewCreate,
) -> Review:
    if user.role != Role.BUYER:
        raise ForbiddenException("Only buyers can review products")
    get_product(products, product_id)
    return reviews.create(
        {
            "rating": data.rating,
            "comment": data.comment,
            "user_id": user.id,
            "product_id": product_id,
        }
    )


def get_reviews(reviews: SQLAlchemyReviewRepository, products: ProductRepository, product_id: int) -> list[Review]:
    get_product(products, product_id)
    return reviews.list_for_product(product_id)
