"""
Shared transaction handling for the SQL reference stores.

Every store method runs inside ``store_transaction``: commit on success,
rollback on any failure.  ``SQLAlchemyError`` is translated into
``UpstreamFailureError`` carrying the operation name; kernel errors raised
by the store's own validation propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fx_kernel.exceptions import UpstreamFailureError
from fx_kernel.logging_config import get_logger

logger = get_logger("modules.store")


@contextmanager
def store_transaction(session: Session, operation: str) -> Iterator[Session]:
    """Run one atomic store request."""
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(
            "store_operation_failed",
            extra={"operation": operation, "error": str(exc)},
        )
        raise UpstreamFailureError(operation, str(exc)) from exc
    except Exception:
        session.rollback()
        raise


@contextmanager
def store_read(session: Session, operation: str) -> Iterator[Session]:
    """Run a read; driver failures become ``UpstreamFailureError``."""
    try:
        yield session
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(
            "store_read_failed",
            extra={"operation": operation, "error": str(exc)},
        )
        raise UpstreamFailureError(operation, str(exc)) from exc
