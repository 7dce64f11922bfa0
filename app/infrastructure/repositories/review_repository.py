"""
SQLAlchemy repository for product reviews.
"""

from typing import List

from app.domain.models.review import Review
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyReviewRepository(SQLAlchemyRepository[Review]):

    def list_for_product(self, product_id: int) -> List[Review]:
        return (
            self.db.query(Review)
            .filter(Review.product_id == product_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .all()
        )
