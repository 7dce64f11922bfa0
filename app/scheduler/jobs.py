"""APScheduler jobs — hourly purge of expired refresh-token records."""

from datetime import datetime, timezone

import pytz
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from app.domain.models.refresh_token import RefreshToken
from app.infrastructure.database import SessionLocal
from app.infrastructure.repositories.refresh_token_repository import SQLAlchemyRefreshTokenRepository

logger = structlog.get_logger(__name__)

_scheduler: AsyncIOScheduler | None = None


def purge_expired_refresh_tokens(session_factory=SessionLocal) -> int:
    """Delete refresh-token records whose expiry has passed."""
    db = session_factory()
    try:
        repo = SQLAlchemyRefreshTokenRepository(db, RefreshToken)
        deleted = repo.delete_expired(datetime.now(timezone.utc))
        logger.info("Expired refresh tokens purged", deleted=deleted)
        return deleted
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Refresh token purge failed", error=str(e))
        return 0
    finally:
        db.close()


def start_scheduler(timezone_name: str = "UTC") -> AsyncIOScheduler:
    global _scheduler
    _scheduler = AsyncIOScheduler(timezone=pytz.timezone(timezone_name))
    _scheduler.add_job(
        purge_expired_refresh_tokens,
        IntervalTrigger(hours=1),
        id="purge_expired_refresh_tokens",
        replace_existing=True,
    )
    _scheduler.start()
    logger.info("Scheduler started", jobs=[job.id for job in _scheduler.get_jobs()])
    return _scheduler


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None
