"""Product domain model — maps to the 'products' table."""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.infrastructure.database import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price > 0", name="ck_products_price_positive"),
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    images = Column(JSON, nullable=False, default=list)  # ordered image URLs
    country = Column(String(100), nullable=True, index=True)
    stock = Column(Integer, nullable=False, default=0)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    seller = relationship("User", lazy="joined")
    category_links = relationship(
        "ProductCategory",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductCategory.name",
    )

    @property
    def categories(self) -> list[str]:
        return [link.name for link in self.category_links]

    def __repr__(self):
        return f"<Product {self.id} - {self.title}>"


class ProductCategory(Base):
    __tablename__ = "product_categories"
    __table_args__ = (UniqueConstraint("product_id", "name", name="uq_product_category"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False, index=True)

    def __repr__(self):
        return f"<ProductCategory {self.product_id}:{self.name}>"
