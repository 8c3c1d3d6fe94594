"""
Optimistic concurrency for read-modify-write operations.

Versioned rows (approval requests, payroll months, leave balances, loans)
carry a version_id_col. When a concurrent writer bumped the version between
our read and our flush, SQLAlchemy raises StaleDataError. The whole operation
is then rolled back and re-run from a fresh read, a bounded number of times.
"""
import logging
from typing import Any, Callable, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from settlement.core.config import settings
from settlement.core.exceptions import ConcurrentModification

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retry(
    db: Session,
    entity_type: str,
    entity_id: Any,
    operation: Callable[..., T],
    *args,
    max_retries: int = None,
    **kwargs,
) -> T:
    """
    Run operation(db, *args, **kwargs) and commit, retrying on version conflicts.

    Any other exception rolls the session back and propagates unchanged, so a
    failed check never leaves a partial effect behind.

    Raises:
        ConcurrentModification: when every attempt lost the race
    """
    attempts = max_retries or settings.CONCURRENCY_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            result = operation(db, *args, **kwargs)
            db.commit()
            return result
        except StaleDataError:
            db.rollback()
            # Drop cached state so the next attempt re-reads current versions
            db.expire_all()
            logger.warning(
                "Version conflict on %s id=%s (attempt %s/%s)",
                entity_type, entity_id, attempt, attempts,
            )
        except Exception:
            db.rollback()
            raise

    raise ConcurrentModification(
        f"{entity_type} {entity_id} was modified concurrently; gave up after {attempts} attempts",
        entity_type=entity_type,
        entity_id=entity_id,
    )
