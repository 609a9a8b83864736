# Pydantic Schemas Package
from .stock import Location, StockLineUpsert, StockLineResponse, StockMovementResponse, AvailabilityRow
from .reservation import (
    ReserveRequest, ActorRequest, ReservationResponse, ReservationStats,
    SweepResult, SweepRunResponse,
)

__all__ = [
    "Location", "StockLineUpsert", "StockLineResponse", "StockMovementResponse", "AvailabilityRow",
    "ReserveRequest", "ActorRequest", "ReservationResponse", "ReservationStats",
    "SweepResult", "SweepRunResponse",
]
