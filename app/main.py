"""FastAPI application — main entry point."""

import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.infrastructure.database import engine, Base
from app.core.logging import configure_logging
from app.core.middleware import setup_middleware
from app.core.exceptions import register_exception_handlers
from app.infrastructure.counter_store import RedisCounterStore
from app.interfaces.deps import get_counter_store, get_security_notifier

# Import all models so SQLAlchemy knows about them
from app.domain.models.user import User  # noqa: F401
from app.domain.models.product import Product, ProductCategory  # noqa: F401
from app.domain.models.review import Review  # noqa: F401
from app.domain.models.audit_log import AuditLog  # noqa: F401
from app.domain.models.refresh_token import RefreshToken  # noqa: F401

# Import routers
from app.interfaces.api.auth import router as auth_router
from app.interfaces.api.products import router as products_router
from app.interfaces.api.checkout import router as checkout_router
from app.interfaces.api.audit import router as audit_router

settings = get_settings()

# Configure logging immediately
configure_logging(settings)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    logger.info(
        "Starting Heritage Marketplace API",
        env=settings.ENVIRONMENT,
        rate_limit_backend=settings.RATE_LIMIT_BACKEND,
        image_storage=settings.IMAGE_STORAGE,
    )

    # Create DB tables (dev only; use migrations in production)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    store = get_counter_store()
    if isinstance(store, RedisCounterStore):
        # Refuse to start without the shared counter store
        await store.ping()
        logger.info("Redis counter store reachable")

    if settings.IMAGE_STORAGE == "local":
        os.makedirs(settings.UPLOAD_DIR, exist_ok=True)

    if settings.SCHEDULER_ENABLED:
        from app.scheduler.jobs import start_scheduler
        start_scheduler(settings.TIMEZONE)

    yield

    if settings.SCHEDULER_ENABLED:
        from app.scheduler.jobs import stop_scheduler
        stop_scheduler()
    await get_security_notifier().drain()
    await get_counter_store().close()
    logger.info("Heritage Marketplace API stopped")


app = FastAPI(
    title="Heritage Marketplace API",
    description="Marketplace backend — heritage products, sellers, reviews and checkout",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.is_production = settings.is_production

# Setup Middleware (Correlation ID, Logging)
setup_middleware(app)

# Exception handling: one JSON envelope for every error
register_exception_handlers(app)

# CORS is added last so it runs outermost
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset", "Retry-After"],
)

# Include routers
app.include_router(auth_router)
app.include_router(products_router)
app.include_router(checkout_router)
app.include_router(audit_router)

if settings.IMAGE_STORAGE == "local":
    app.mount("/media", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="media")


@app.get("/")
def root():
    return {
        "name": "Heritage Marketplace API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "error": "database_unavailable"},
        )
    return {"status": "healthy"}
