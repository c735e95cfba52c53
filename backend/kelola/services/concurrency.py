# Overview: Service-layer operations for concurrency; transaction scoping, row locks and retries.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConcurrentModificationError


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations and re-read the row.

    populate_existing() makes the session refresh an already-loaded object,
    so a caller always validates against the latest committed stock.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() and version
    columns cover it there.
    """
    return query.with_for_update().populate_existing()


def begin_write() -> None:
    """
    Take the SQLite write lock up front (BEGIN IMMEDIATE) so two writers
    serialize on the whole read-validate-write sequence. No-op elsewhere.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_connection = db.session.connection().connection.dbapi_connection
    if getattr(dbapi_connection, "in_transaction", False):
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None, retry_on: tuple = ()):
    """
    Execute a DB operation as one unit of work.

    Any exception rolls the session back, so a failed workflow never leaves
    flushed-but-uncommitted rows visible. OperationalError (locks, deadlocks)
    and StaleDataError (version conflicts), plus any extra retry_on types,
    are retried with exponential backoff; when attempts run out the caller
    gets ConcurrentModificationError.
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("STOCK_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("STOCK_RETRY_BACKOFF", 0.1)

    retryable = RETRYABLE_ERRORS + tuple(retry_on)
    for attempt in range(attempts):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error(
                    "Write conflict persisted after %d attempts: %s", attempts, exc
                )
                raise ConcurrentModificationError(
                    "Write conflict, please retry",
                    {"attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Write conflict on attempt %d/%d, retrying: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise ConcurrentModificationError("Write conflict, please retry", {"attempts": attempts})
