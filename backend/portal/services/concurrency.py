# Overview: Service-layer helpers for conditional writes and retry on contention.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy import update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PortalError, StorageError
from ..extensions import db


class ConcurrentUpdateError(PortalError):
    """A conditional update matched no row because another actor changed it first."""


def compare_and_swap(model, *, row_id, expected: dict, values: dict) -> bool:
    """
    Apply `values` to one row only if its columns still equal `expected`.

    Issues UPDATE ... WHERE id = :row_id AND <col> = :expected ... inside the
    current session transaction and returns True iff exactly one row matched.
    Nothing is committed here; the caller owns the transaction.

    This is the only way the two contended fields (Request.status and
    Item.stock_balance) are written.
    """
    stmt = update(model).where(model.id == row_id)
    for column_name, expected_value in expected.items():
        stmt = stmt.where(getattr(model, column_name) == expected_value)
    stmt = stmt.values(**values).execution_options(synchronize_session="fetch")

    result = db.session.execute(stmt)
    return result.rowcount == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError and
    ConcurrentUpdateError (lost compare-and-swap).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, ConcurrentUpdateError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                if isinstance(exc, ConcurrentUpdateError):
                    raise
                raise StorageError("Store is busy, operation did not commit") from exc
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


@contextmanager
def atomic(description: str):
    """
    Run a block as one logical write.

    Commits on success. On any failure the session is rolled back so no half of
    a multi-row write survives; SQLAlchemy errors are re-raised as StorageError,
    domain errors propagate unchanged.
    """
    try:
        yield db.session
        db.session.commit()
    except PortalError:
        db.session.rollback()
        raise
    except (OperationalError, StaleDataError):
        # classified by run_with_retry
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError(f"Failed to {description}") from exc
    except Exception:
        db.session.rollback()
        raise
