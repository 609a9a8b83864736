"""
Reservation Engine Errors

Business-rule errors are raised to the caller as-is. Transient storage
failures are translated into StorageUnavailableError, which callers may
retry with backoff.
"""
from contextlib import contextmanager
import logging

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class ReservationError(Exception):
    """Base class for every reservation engine error"""
    http_status = 400


class OverbookError(ReservationError):
    """Reservation (or a lower stock total) would exceed available stock"""
    http_status = 409


class DuplicateReservationError(ReservationError):
    """Proposal already holds an active reservation for this sku/location"""
    http_status = 409


class InvalidTransitionError(ReservationError):
    """Reservation is no longer active"""
    http_status = 409


class ReservationNotFoundError(ReservationError):
    """No matching reservation"""
    http_status = 404


class StockLineNotFoundError(ReservationError):
    """No stock line for the sku/location pair"""
    http_status = 404


class InsufficientStockError(ReservationError):
    """Ledger total is lower than the volume being consumed"""
    http_status = 409


class InvalidReservationError(ReservationError, ValueError):
    """Malformed reservation request (empty id, non-positive volume)"""
    http_status = 422


class StorageUnavailableError(ReservationError):
    """Transient storage failure; safe to retry"""
    http_status = 503


TRANSIENT_ERRORS = (sa_exc.OperationalError, sa_exc.TimeoutError, sa_exc.InterfaceError)


def is_transient(error: Exception) -> bool:
    if isinstance(error, TRANSIENT_ERRORS):
        return True
    return isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated


@contextmanager
def storage_errors(db: Session):
    """Roll back and re-raise transient driver errors as StorageUnavailableError"""
    try:
        yield db
    except ReservationError:
        db.rollback()
        raise
    except sa_exc.SQLAlchemyError as e:
        db.rollback()
        if is_transient(e):
            logger.warning(f"Storage unavailable: {e.__class__.__name__}: {str(e)[:200]}")
            raise StorageUnavailableError(str(e)) from e
        raise
