# Overview: Retry and compare-and-set helpers around record-store writes.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy import or_, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import UpstreamError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _retry_defaults() -> tuple[int, float]:
    if not has_app_context():
        return 3, 0.1
    return (
        int(current_app.config.get("STORE_RETRY_ATTEMPTS", 3)),
        float(current_app.config.get("STORE_RETRY_BACKOFF", 0.1)),
    )


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a record-store operation with retry on transient failures.

    Retries on OperationalError (locks, dropped connections) and
    StaleDataError (version_id mismatch on flush). When attempts are
    exhausted, or on any other SQLAlchemyError, the session is rolled back
    and UpstreamError is raised with the driver error chained.

    Domain errors raised by func propagate untouched.
    """
    default_attempts, default_backoff = _retry_defaults()
    attempts = attempts or default_attempts
    backoff_base = default_backoff if backoff_base is None else backoff_base

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Record store write failed after %s attempts: %s", attempts, exc)
                raise UpstreamError("Record store unavailable, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.warning("Record store rejected write: %s", exc)
            raise UpstreamError("Record store rejected the write") from exc


def compare_and_set(
    model,
    record_id: int,
    *,
    field: str,
    expected,
    values: dict,
    match_null: bool = False,
    guards: dict | None = None,
) -> bool:
    """
    Single-row conditional write:
        UPDATE <table> SET <values>, version_id = version_id + 1
        WHERE id = :record_id AND <field> = :expected

    Returns True if the row was written, False if the stored value no longer
    equals expected (or the row is gone). Commits on success.

    NULL-aware: expected=None matches a NULL column. match_null=True also
    accepts a NULL column for a non-None expected value (legacy rows whose
    NULL reads as a default).

    guards: extra {column: value} equalities the row must still satisfy,
    e.g. the ownership/location an authorization decision was based on.
    """
    column = getattr(model, field)
    if expected is None:
        condition = column.is_(None)
    elif match_null:
        condition = or_(column == expected, column.is_(None))
    else:
        condition = column == expected

    conditions = [model.id == record_id, condition]
    for name, value in (guards or {}).items():
        conditions.append(getattr(model, name) == value)

    patch = dict(values)
    if hasattr(model, "version_id"):
        patch["version_id"] = model.version_id + 1

    stmt = (
        update(model)
        .where(*conditions)
        .values(**patch)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.rollback()
        return False
    db.session.commit()
    return True
