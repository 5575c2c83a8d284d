# Overview: Retry and timeout handling for store calls.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from .errors import StoreUnavailableError


def is_transient(exc: Exception) -> bool:
    """OperationalError (locks, timeouts) and dropped connections are transient."""
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def run_with_retry(func, session, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a store operation with retry on transient failures.

    The session is rolled back between attempts. When attempts run out the
    last failure is raised as StoreUnavailableError; non-transient errors
    propagate untouched on the first occurrence.
    """
    for attempt in range(attempts):
        try:
            return func()
        except DBAPIError as exc:
            session.rollback()
            if not is_transient(exc):
                raise
            if has_app_context():
                current_app.logger.warning(
                    "Transient store failure (attempt %d/%d): %s", attempt + 1, attempts, exc.orig
                )
            if attempt >= attempts - 1:
                raise StoreUnavailableError("Token store unavailable, retry later") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except StaleDataError as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise StoreUnavailableError("Token store conflict, retry later") from exc
            time.sleep(backoff_base * (2 ** attempt))
    raise StoreUnavailableError("Token store unavailable, retry later")
