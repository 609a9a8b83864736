"""
Stock & Inventory Models
"""
import enum
from sqlalchemy import Column, String, Numeric, CheckConstraint, UniqueConstraint, Text, Index
from app.core import Base
from .base import UUIDMixin, TimestampMixin, UTCDateTime, utcnow

VOLUME = Numeric(14, 3)


class VolumeUnit(str, enum.Enum):
    LITERS = "liters"
    KILOGRAMS = "kilograms"
    TONNES = "tonnes"


class MovementType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUST = "ADJUST"


class StockLine(Base, UUIDMixin, TimestampMixin):
    """Volume on hand for one SKU at one location (city/state)"""
    __tablename__ = "stock_line"

    sku = Column(String(100), nullable=False)
    city = Column(String(120), nullable=False)
    state = Column(String(60), nullable=False)
    product_name = Column(String(200))

    total_volume = Column(VOLUME, nullable=False, default=0)
    unit = Column(String(20), nullable=False, default=VolumeUnit.LITERS.value)

    __table_args__ = (
        UniqueConstraint("sku", "city", "state", name="uq_stock_line_sku_location"),
        CheckConstraint("total_volume >= 0", name="ck_stock_line_total_non_negative"),
    )

    @property
    def location(self):
        from app.schemas.stock import Location
        return Location(self.city, self.state)


class StockMovement(Base, UUIDMixin):
    """Stock Movement Ledger - every change to a stock line total"""
    __tablename__ = "stock_movement"

    sku = Column(String(100), nullable=False)
    city = Column(String(120), nullable=False)
    state = Column(String(60), nullable=False)

    # Movement info
    movement_type = Column(String(20), nullable=False)  # IN, OUT, ADJUST
    quantity = Column(VOLUME, nullable=False)  # Positive or negative

    # Reference
    reference_type = Column(String(30))  # PROPOSAL, ADJUSTMENT, INITIAL
    reference_id = Column(String(100))

    # Metadata
    note = Column(Text)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    created_by = Column(String(100))

    __table_args__ = (
        Index("ix_stock_movement_sku_location", "sku", "city", "state"),
    )
