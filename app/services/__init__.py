# Services Package
from .stock_service import StockLedgerService
from .reservation_store import ReservationStore
from .expiry_service import ExpirySweeper
from .availability_service import AvailabilityService
from .reservation_service import ReservationService

__all__ = [
    "StockLedgerService",
    "ReservationStore",
    "ExpirySweeper",
    "AvailabilityService",
    "ReservationService",
]
