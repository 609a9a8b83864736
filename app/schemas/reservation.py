"""
Reservation Schemas
"""
from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from .stock import Volume


class ReserveRequest(BaseModel):
    proposal_id: str = Field(..., min_length=1)
    opportunity_id: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    volume: Decimal = Field(..., gt=0, decimal_places=3)
    representative_id: Optional[str] = None
    notes: Optional[str] = None
    ttl_hours: Optional[float] = Field(None, gt=0)


class ActorRequest(BaseModel):
    """Body for confirm/cancel/reject: who is acting and why"""
    actor: Optional[str] = None
    reason: Optional[str] = None


class ReservationResponse(BaseModel):
    id: UUID
    proposal_id: str
    opportunity_id: str
    representative_id: Optional[str] = None
    sku: str
    city: str
    state: str
    reserved_volume: Volume
    status: str
    created_at: datetime
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def alert(self) -> Optional[str]:
        """active / expiring_soon / expired as of now; None once consumed or cancelled"""
        from app.services.reservation_service import ReservationService
        return ReservationService.expiry_alert(self)


class ReservationStats(BaseModel):
    active_count: int
    consumed_count: int
    expired_count: int
    cancelled_count: int
    expiring_soon_count: int
    total_reserved_volume: Volume
    conversion_rate: float  # consumed / (consumed + expired), percent


class SweepResult(BaseModel):
    success: bool
    expired_count: int
    timestamp: datetime


class SweepRunResponse(BaseModel):
    id: UUID
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: str
    expired_count: int
    error_message: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
