# Overview: Service-layer operations for concurrency; transaction, locking and retry helpers.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConfigurationError
from ..extensions import db

_MISSING_SCHEMA_MARKERS = ("no such table", "does not exist", "undefinedtable")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front.

    SQLite only serializes writers at the first write statement, which is
    too late for read-check-write sequences; BEGIN IMMEDIATE takes the
    reserved lock before anything is read.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def _is_missing_schema(exc: Exception) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _MISSING_SCHEMA_MARKERS)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking / compare-and-set conflicts). A missing table is not
    a transient condition and surfaces as ConfigurationError immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, ProgrammingError) as exc:
            db.session.rollback()
            if _is_missing_schema(exc):
                raise ConfigurationError(
                    "Database schema is not provisioned. Run `flask system init-db`."
                ) from exc
            if isinstance(exc, ProgrammingError):
                raise
            last_exc = exc
        except StaleDataError as exc:
            db.session.rollback()
            last_exc = exc
        if attempt >= attempts - 1:
            raise last_exc
        current_app.logger.warning(
            "Retrying after concurrent update conflict (attempt %s/%s): %s",
            attempt + 1, attempts, last_exc,
        )
        time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_write_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func inside one write transaction: commit on success, roll back on
    any failure, retry the whole unit on conflicts.
    """
    def _op():
        begin_write()
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)


def run_read(func):
    """Read-only operations still map an unprovisioned store to ConfigurationError."""
    return run_with_retry(func, attempts=1)
