"""Products API routes — catalog, seller listings and reviews."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import ValidationException
from app.application.services.product_service import (
    create_product,
    get_product,
    get_products,
    get_seller_products,
)
from app.application.services.review_service import create_review, get_reviews
from app.domain.models.user import Role, User
from app.domain.repositories.product_repository import ProductRepository
from app.domain.schemas.product import ProductCreate, ProductFilter, ProductPage, ProductRead
from app.domain.schemas.review import ReviewCreate, ReviewRead
from app.infrastructure.image_storage import ImageStorage, safe_extension
from app.infrastructure.repositories.review_repository import SQLAlchemyReviewRepository
from app.interfaces.api.deps import rate_limit, require_role
from app.interfaces.deps import get_image_storage, get_product_repository, get_review_repository

router = APIRouter(tags=["Products"])

MAX_IMAGE_BYTES = 5 * 1024 * 1024


def _page(result: dict) -> ProductPage:
    return ProductPage(
        items=[ProductRead.model_validate(p) for p in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
        total_pages=result["total_pages"],
    )


@router.get("/products", response_model=ProductPage)
def list_products(
    search: Optional[str] = None,
    country: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    repo: ProductRepository = Depends(get_product_repository),
):
    filters = ProductFilter(
        search=search,
        country=country,
        category=category,
        min_price=min_price,
        max_price=max_price,
        page=page,
        page_size=page_size,
    )
    return _page(get_products(repo, filters))


@router.get("/products/{product_id}", response_model=ProductRead)
def product_detail(product_id: int, repo: ProductRepository = Depends(get_product_repository)):
    return ProductRead.model_validate(get_product(repo, product_id))


@router.post(
    "/add-product",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("api"))],
)
async def add_product(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    stock: int = Form(0),
    categories: str = Form(""),
    image: Optional[UploadFile] = File(None),
    seller: User = Depends(require_role(Role.SELLER)),
    repo: ProductRepository = Depends(get_product_repository),
    storage: ImageStorage = Depends(get_image_storage),
):
    missing = [name for name, value in
               (("title", title), ("description", description), ("price", price), ("country", country))
               if not value or not value.strip()]
    if missing:
        raise ValidationException("All fields are required.", {"missing": missing})

    try:
        data = ProductCreate(
            title=title,
            description=description,
            price=price,
            country=country,
            stock=stock,
            categories=categories.split(",") if categories else [],
        )
    except ValidationError as exc:
        fields = [{"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"]} for e in exc.errors()]
        raise ValidationException("Invalid product data", {"fields": fields}) from exc

    image_urls: list[str] = []
    if image is not None and image.filename:
        if not safe_extension(image.filename):
            raise ValidationException("Unsupported image type", {"filename": image.filename})
        # One byte past the limit is enough to detect an oversize upload
        content = await image.read(MAX_IMAGE_BYTES + 1)
        if len(content) > MAX_IMAGE_BYTES:
            raise ValidationException("Image too large", {"maxBytes": MAX_IMAGE_BYTES})
        image_urls.append(await storage.upload(content, image.filename, folder="products"))

    product = await run_in_threadpool(create_product, repo, seller, data, image_urls)
    return ProductRead.model_validate(product)


@router.get("/my-products", response_model=ProductPage)
def my_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    seller: User = Depends(require_role(Role.SELLER)),
    repo: ProductRepository = Depends(get_product_repository),
):
    return _page(get_seller_products(repo, seller, page, page_size))


@router.post(
    "/products/{product_id}/reviews",
    response_model=ReviewRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("api"))],
)
def add_review(
    product_id: int,
    body: ReviewCreate,
    user: User = Depends(require_role(Role.BUYER)),
    reviews: SQLAlchemyReviewRepository = Depends(get_review_repository),
    repo: ProductRepository = Depends(get_product_repository),
):
    return ReviewRead.model_validate(create_review(reviews, repo, user, product_id, body))


@router.get("/products/{product_id}/reviews", response_model=list[ReviewRead])
def list_reviews(
    product_id: int,
    reviews: SQLAlchemyReviewRepository = Depends(get_review_repository),
    repo: ProductRepository = Depends(get_product_repository),
):
    return [ReviewRead.model_validate(r) for r in get_reviews(reviews, repo, product_id)]
