from .base import TimestampMixin, UUIDMixin, UTCDateTime, utcnow, resolve_now
from .stock import StockLine, StockMovement, VolumeUnit, MovementType
from .reservation import Reservation, ReservationStatus, TERMINAL_STATUSES, STATUS_TIMESTAMP_FIELDS
from .audit import AuditLog
from .sweep_log import SweepRun, SweepStatus

__all__ = [
    # Base
    "TimestampMixin", "UUIDMixin", "UTCDateTime", "utcnow", "resolve_now",
    # Stock
    "StockLine", "StockMovement", "VolumeUnit", "MovementType",
    # Reservation
    "Reservation", "ReservationStatus", "TERMINAL_STATUSES", "STATUS_TIMESTAMP_FIELDS",
    # Audit
    "AuditLog",
    # Sweeper
    "SweepRun", "SweepStatus",
]
