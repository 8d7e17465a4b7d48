"""Transaction guard translating storage failures into ``TransientStorageError``."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from urbanfix.core.errors import TransientStorageError

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@contextmanager
def storage_guard(db: Session, operation: str) -> Iterator[None]:
    """Run a core operation so that it either commits fully or leaves no trace.

    Any exception rolls the session back before propagating; connection-level
    failures are re-raised as ``TransientStorageError``.
    """
    try:
        yield
    except _TRANSIENT_ERRORS as exc:
        db.rollback()
        logger.error("Storage failure during %s", operation, exc_info=True)
        raise TransientStorageError(f"Storage unavailable during {operation}; retry") from exc
    except BaseException:
        db.rollback()
        raise
