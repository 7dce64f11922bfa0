"""Batch backfill of products that were listed without a country."""

import random
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Sequence

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.models.product import Product

logger = structlog.get_logger(__name__)

COUNTRIES = [
    "Algeria", "Bahrain", "Comoros", "Djibouti", "Egypt",
    "Iraq", "Jordan", "Kuwait", "Lebanon", "Libya",
    "Mauritania", "Morocco", "Oman", "Palestine",
    "Qatar", "Saudi Arabia", "Somalia", "Sudan",
    "Syria", "Tunisia", "United Arab Emirates", "Yemen",
]

BATCH_SIZE = 500
MAX_RETRIES = 3
RETRY_DELAY = 2.0  # seconds


class BackfillError(Exception):
    """A batch kept failing after every retry; the run is aborted."""


@dataclass
class BackfillResult:
    candidates: int = 0
    updated: int = 0
    dry_run: bool = False
    distribution: dict[str, int] = field(default_factory=dict)


def validate_countries(countries: Sequence[str]) -> None:
    if not countries:
        raise ValueError("Country list is empty")
    if len(set(countries)) != len(countries):
        raise ValueError("Duplicate countries detected")


def _apply_batch(db: Session, batch: list[tuple[int, str]]) -> None:
    for product_id, country in batch:
        db.query(Product).filter(Product.id == product_id).update(
            {Product.country: country}, synchronize_session=False
        )
    db.commit()


def process_batch(
    db: Session,
    batch: list[tuple[int, str]],
    max_retries: int = MAX_RETRIES,
    retry_delay: float = RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Apply one batch in a single transaction, retrying with a fixed delay."""
    attempt = 0
    while True:
        try:
            _apply_batch(db, batch)
            return
        except SQLAlchemyError as exc:
            db.rollback()
            attempt += 1
            if attempt > max_retries:
                raise BackfillError(f"Batch of {len(batch)} failed after {max_retries} retries") from exc
            logger.warning("Batch failed, retrying", attempt=attempt, max_retries=max_retries, error=str(exc))
            sleep(retry_delay)


def backfill_missing_countries(
    db: Session,
    countries: Sequence[str] = COUNTRIES,
    batch_size: int = BATCH_SIZE,
    max_retries: int = MAX_RETRIES,
    retry_delay: float = RETRY_DELAY,
    dry_run: bool = False,
    choose: Callable[[Sequence[str]], str] = random.choice,
    sleep: Callable[[float], None] = time.sleep,
) -> BackfillResult:
    validate_countries(countries)
    if batch_size < 1:
        raise ValueError("batch_size must be positive")

    ids = [
        row[0]
        for row in db.query(Product.id)
        .filter(or_(Product.country.is_(None), Product.country == ""))
        .order_by(Product.id)
        .all()
    ]
    result = BackfillResult(candidates=len(ids), dry_run=dry_run)
    if not ids:
        logger.info("All products have a country")
        return result

    updates = [(product_id, choose(countries)) for product_id in ids]
    if dry_run:
        result.distribution = dict(Counter(country for _, country in updates))
        logger.info("Dry run, no changes written", would_update=len(updates))
        return result

    distribution: Counter = Counter()
    for start in range(0, len(updates), batch_size):
        batch = updates[start:start + batch_size]
        process_batch(db, batch, max_retries=max_retries, retry_delay=retry_delay, sleep=sleep)
        distribution.update(country for _, country in batch)
        result.updated += len(batch)
        logger.info("Batch processed", processed=result.updated, total=len(updates))

    result.distribution = dict(distribution)
    return result
