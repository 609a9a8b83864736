"""
Stock Schemas
"""
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from typing import NamedTuple, Optional, Annotated
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from app.models.stock import VolumeUnit

# Decimals travel as JSON numbers
Volume = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class Location(NamedTuple):
    """(city, state) pair, e.g. Location("Sorriso", "MT")"""
    city: str
    state: str

    def __str__(self) -> str:
        return f"{self.city},{self.state}"

    @classmethod
    def parse(cls, value: str) -> "Location":
        """Parse "City,ST" (the format used in reports)"""
        city, sep, state = value.rpartition(",")
        if not sep or not city.strip() or not state.strip():
            raise ValueError(f"Invalid location: {value!r}, expected 'City,ST'")
        return cls(city.strip(), state.strip())


class StockLineUpsert(BaseModel):
    sku: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    total_volume: Decimal = Field(..., ge=0, decimal_places=3)
    unit: VolumeUnit = VolumeUnit.LITERS
    product_name: Optional[str] = None
    note: Optional[str] = None


class StockLineResponse(BaseModel):
    id: UUID
    sku: str
    city: str
    state: str
    product_name: Optional[str] = None
    total_volume: Volume
    unit: str
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StockMovementResponse(BaseModel):
    id: UUID
    sku: str
    city: str
    state: str
    movement_type: str  # IN, OUT, ADJUST
    quantity: Volume
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime
    created_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilityRow(BaseModel):
    """Derived availability for one sku/location (never persisted)"""
    sku: str
    city: str
    state: str
    product_name: Optional[str] = None
    unit: str
    total_volume: Volume
    reserved_volume: Volume
    available_volume: Volume
    active_reservation_count: int
    next_expiry: Optional[datetime] = None
    band: str  # fully_available, partially_reserved, fully_reserved

    @property
    def location(self) -> Location:
        return Location(self.city, self.state)
