"""
Inventory Reservation Model
"""
import enum
from sqlalchemy import Column, String, Text, CheckConstraint, Index
from app.core import Base
from .base import UUIDMixin, TimestampMixin, UTCDateTime
from .stock import VOLUME


class ReservationStatus(str, enum.Enum):
    ACTIVE = "active"
    CONSUMED = "consumed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = (
    ReservationStatus.CONSUMED,
    ReservationStatus.EXPIRED,
    ReservationStatus.CANCELLED,
)

# Terminal status -> timestamp column set on that transition
STATUS_TIMESTAMP_FIELDS = {
    ReservationStatus.CONSUMED: "consumed_at",
    ReservationStatus.EXPIRED: "expired_at",
    ReservationStatus.CANCELLED: "cancelled_at",
}


class Reservation(Base, UUIDMixin, TimestampMixin):
    """Time-bounded hold of stock volume for a commercial proposal"""
    __tablename__ = "inventory_reservation"

    proposal_id = Column(String(100), nullable=False, index=True)
    opportunity_id = Column(String(100), nullable=False, index=True)
    representative_id = Column(String(100), index=True)

    # Stock line (sku + location)
    sku = Column(String(100), nullable=False)
    city = Column(String(120), nullable=False)
    state = Column(String(60), nullable=False)

    reserved_volume = Column(VOLUME, nullable=False)
    status = Column(String(20), nullable=False, default=ReservationStatus.ACTIVE.value, index=True)

    expires_at = Column(UTCDateTime, nullable=False, index=True)
    consumed_at = Column(UTCDateTime)
    cancelled_at = Column(UTCDateTime)
    expired_at = Column(UTCDateTime)

    notes = Column(Text)

    __table_args__ = (
        CheckConstraint("reserved_volume > 0", name="ck_reservation_volume_positive"),
        Index("ix_reservation_sku_location_status", "sku", "city", "state", "status"),
    )

    @property
    def location(self):
        from app.schemas.stock import Location
        return Location(self.city, self.state)

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE.value
