"""
API Dependencies.
Long-lived components are built once from Settings; repositories and
services are built per request around the request's DB session.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.core.security import PasswordHasher
from app.application.services.audit_service import AuditLogWriter, SecurityAlertNotifier
from app.application.services.auth_service import AccessTokenDenylist, AuthService
from app.application.services.rate_limiter import LoginLockout, RateLimiter, RateLimitRules
from app.application.services.token_service import TokenService
from app.domain.models.audit_log import AuditLog
from app.domain.models.product import Product
from app.domain.models.refresh_token import RefreshToken
from app.domain.models.review import Review
from app.domain.models.user import User
from app.domain.repositories.product_repository import ProductRepository
from app.domain.repositories.user_repository import UserRepository
from app.infrastructure.counter_store import CounterStore, MemoryCounterStore, RedisCounterStore
from app.infrastructure.database import get_db
from app.infrastructure.image_storage import CloudinaryImageStorage, ImageStorage, LocalImageStorage
from app.infrastructure.payment_gateway import PaymentGateway, StripeCheckoutGateway
from app.infrastructure.repositories.audit_log_repository import SQLAlchemyAuditLogRepository
from app.infrastructure.repositories.product_repository import SQLAlchemyProductRepository
from app.infrastructure.repositories.refresh_token_repository import SQLAlchemyRefreshTokenRepository
from app.infrastructure.repositories.review_repository import SQLAlchemyReviewRepository
from app.infrastructure.repositories.user_repository import SQLAlchemyUserRepository


# Singletons

@lru_cache
def get_counter_store() -> CounterStore:
    settings = get_settings()
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RedisCounterStore(settings.REDIS_URL, socket_timeout=settings.OUTBOUND_TIMEOUT_SECONDS)
    return MemoryCounterStore()


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS)


@lru_cache
def get_token_service() -> TokenService:
    return TokenService.from_settings(get_settings())


@lru_cache
def get_security_notifier() -> SecurityAlertNotifier:
    settings = get_settings()
    return SecurityAlertNotifier(
        settings.SECURITY_ALERT_WEBHOOK,
        settings.SECURITY_ALERT_EVENTS,
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
    )


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return StripeCheckoutGateway(
        settings.STRIPE_SECRET_KEY,
        currency=settings.CHECKOUT_CURRENCY,
        api_base=settings.STRIPE_API_BASE,
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
    )


@lru_cache
def get_image_storage() -> ImageStorage:
    settings = get_settings()
    if settings.IMAGE_STORAGE == "cloudinary":
        return CloudinaryImageStorage(
            settings.CLOUDINARY_CLOUD_NAME,
            settings.CLOUDINARY_API_KEY,
            settings.CLOUDINARY_API_SECRET,
            timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        )
    return LocalImageStorage(settings.UPLOAD_DIR, settings.PUBLIC_BASE_URL)


def get_rate_limiter(
    store: CounterStore = Depends(get_counter_store),
    settings: Settings = Depends(get_settings),
) -> RateLimiter:
    return RateLimiter(store, RateLimitRules.from_settings(settings))


def get_denylist(store: CounterStore = Depends(get_counter_store)) -> AccessTokenDenylist:
    return AccessTokenDenylist(store)


# Repositories

def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    """Get user repository instance."""
    return SQLAlchemyUserRepository(db, User)


def get_product_repository(db: Session = Depends(get_db)) -> ProductRepository:
    """Get product repository instance."""
    return SQLAlchemyProductRepository(db, Product)


def get_review_repository(db: Session = Depends(get_db)) -> SQLAlchemyReviewRepository:
    return SQLAlchemyReviewRepository(db, Review)


def get_refresh_token_repository(db: Session = Depends(get_db)) -> SQLAlchemyRefreshTokenRepository:
    return SQLAlchemyRefreshTokenRepository(db, RefreshToken)


def get_audit_log_repository(db: Session = Depends(get_db)) -> SQLAlchemyAuditLogRepository:
    return SQLAlchemyAuditLogRepository(db, AuditLog)


# Services

def get_audit_writer(
    db: Session = Depends(get_db),
    notifier: SecurityAlertNotifier = Depends(get_security_notifier),
) -> AuditLogWriter:
    return AuditLogWriter(get_audit_log_repository(db), notifier)


def get_auth_service(
    users: UserRepository = Depends(get_user_repository),
    refresh_tokens: SQLAlchemyRefreshTokenRepository = Depends(get_refresh_token_repository),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
    audit: AuditLogWriter = Depends(get_audit_writer),
    store: CounterStore = Depends(get_counter_store),
    denylist: AccessTokenDenylist = Depends(get_denylist),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    lockout = LoginLockout(store, settings.LOGIN_MAX_FAILED_ATTEMPTS, settings.LOGIN_LOCKOUT_SECONDS)
    return AuthService(users, refresh_tokens, hasher, tokens, audit, lockout, denylist)
