# Overview: Transaction scope, row locking and retry helpers shared by all mutating services.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import TransactionAbortError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; run_in_transaction takes the
    database write lock up-front there instead (BEGIN IMMEDIATE).
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the unit of work holding the write lock on SQLite.

    Two concurrent writers are serialized here: the second blocks until the
    first commits, then reads committed quantities.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying transaction after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Run func() as one atomic unit of work and return its result.

    - commit when func returns
    - rollback on every exception, then re-raise (nothing partial persists)
    - whole-unit retry on lock/version conflicts; TransactionAbortError once
      attempts are exhausted

    func must do all of its reads and writes through db.session and must
    not commit itself.
    """
    if attempts is None:
        attempts = current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)

    def _op():
        db.session.rollback()  # start from a clean session state
        begin_write_transaction()
        try:
            result = func()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except (OperationalError, StaleDataError) as exc:
        logger.error("Transaction aborted after %d attempts: %s", attempts, exc)
        raise TransactionAbortError(
            "The operation conflicted with a concurrent update; nothing was saved. Please retry.",
            details={"cause": type(exc).__name__},
        ) from exc

