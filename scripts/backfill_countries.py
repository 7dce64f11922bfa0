import argparse
import os
import sys

# Add parent dir to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog

from app.config import get_settings
from app.core.logging import configure_logging
from app.infrastructure.database import SessionLocal
from app.application.services.backfill_service import (
    BATCH_SIZE,
    BackfillError,
    backfill_missing_countries,
)

logger = structlog.get_logger("backfill_countries")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Assign a country to products listed without one.")
    parser.add_argument("--dry-run", action="store_true", help="report the planned assignment without writing")
    parser.add_argument("--batch-size", type=int, default=BATCH_SIZE)
    args = parser.parse_args(argv)

    configure_logging(get_settings())
    db = SessionLocal()
    try:
        result = backfill_missing_countries(db, batch_size=args.batch_size, dry_run=args.dry_run)
    except (BackfillError, ValueError) as e:
        logger.error("Backfill aborted", error=str(e))
        return 1
    finally:
        db.close()

    logger.info(
        "Backfill finished",
        candidates=result.candidates,
        updated=result.updated,
        dry_run=result.dry_run,
        distribution=result.distribution,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
