# app/db/transaction.py
from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import TokenLedgerError, TransactionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(
    db: Session,
    work: Callable[[], T],
    *,
    label: str,
    retries: int = 1,
) -> T:
    """
    Runs `work` as one atomic unit and commits it.

    - Domain errors roll back and propagate unchanged.
    - A duplicate-key IntegrityError rolls back and re-runs the whole unit
      (up to `retries` times). `work` must re-read state on every attempt.
    - Any other storage failure rolls back and surfaces as TransactionError.
    """
    attempt = 0
    while True:
        try:
            result = work()
            db.commit()
            return result
        except TokenLedgerError:
            db.rollback()
            raise
        except IntegrityError as exc:
            db.rollback()
            if attempt >= retries:
                logger.exception("[tx] %s failed on duplicate key after %d retries", label, attempt)
                raise TransactionError(f"{label} failed: conflicting concurrent write.") from exc
            attempt += 1
            logger.warning("[tx] %s hit duplicate key, retrying (attempt %d)", label, attempt)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("[tx] %s failed, rolled back", label)
            raise TransactionError(f"{label} failed: storage error.") from exc
        except Exception:
            db.rollback()
            logger.exception("[tx] %s aborted by unexpected error, rolled back", label)
            raise
