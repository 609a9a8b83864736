"""
Availability Service
Derives per sku/location availability for the admin and representative views:
- available = total - reserved (active reservations only)
- active reservation count and next expiry
- badge band (fully available / partially reserved / fully reserved)
"""
from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from app.core import settings
from app.core.errors import StockLineNotFoundError, storage_errors
from app.models import Reservation, ReservationStatus, StockLine
from app.schemas.stock import AvailabilityRow
from .expiry_service import ExpirySweeper
from .stock_service import StockLedgerService, LocationLike, as_location, to_decimal

FULLY_AVAILABLE = "fully_available"
PARTIALLY_RESERVED = "partially_reserved"
FULLY_RESERVED = "fully_reserved"


class AvailabilityService:

    @staticmethod
    def classify(total: Decimal, available: Decimal) -> str:
        """Presentation band for the stock badge"""
        if available == total:
            return FULLY_AVAILABLE
        if available <= 0:
            return FULLY_RESERVED
        return PARTIALLY_RESERVED

    @staticmethod
    def build_row(
        line: StockLine,
        reserved,
        active_count: int = 0,
        next_expiry: Optional[datetime] = None
    ) -> AvailabilityRow:
        total = to_decimal(line.total_volume)
        reserved = to_decimal(reserved)
        available = max(Decimal("0"), total - reserved)
        return AvailabilityRow(
            sku=line.sku,
            city=line.city,
            state=line.state,
            product_name=line.product_name,
            unit=line.unit,
            total_volume=total,
            reserved_volume=reserved,
            available_volume=available,
            active_reservation_count=active_count or 0,
            next_expiry=next_expiry,
            band=AvailabilityService.classify(total, available)
        )

    @staticmethod
    def _sweep_if_enabled(db: Session, now: Optional[datetime], sweep: Optional[bool], **scope) -> None:
        if sweep is None:
            sweep = settings.SWEEP_ON_READ
        if sweep:
            expired = ExpirySweeper.sweep(db, now=now, **scope)
            if expired:
                db.commit()

    @staticmethod
    def get_rows(
        db: Session,
        now: Optional[datetime] = None,
        search: Optional[str] = None,
        sweep: Optional[bool] = None
    ) -> List[AvailabilityRow]:
        """Availability for every stock line (inventory reservations report)"""
        with storage_errors(db):
            AvailabilityService._sweep_if_enabled(db, now, sweep)

            lines = StockLedgerService.list_lines(db, search)

            # One aggregate query for all active reservations
            aggregates = db.query(
                Reservation.sku,
                Reservation.city,
                Reservation.state,
                func.sum(Reservation.reserved_volume).label("reserved"),
                func.count(Reservation.id).label("active_count"),
                func.min(Reservation.expires_at).label("next_expiry")
            ).filter(
                Reservation.status == ReservationStatus.ACTIVE.value
            ).group_by(
                Reservation.sku,
                Reservation.city,
                Reservation.state
            ).all()

            agg_map = {(a.sku, a.city, a.state): a for a in aggregates}

            rows = []
            for line in lines:
                agg = agg_map.get((line.sku, line.city, line.state))
                if agg:
                    rows.append(AvailabilityService.build_row(line, agg.reserved, agg.active_count, agg.next_expiry))
                else:
                    rows.append(AvailabilityService.build_row(line, 0))
            return rows

    @staticmethod
    def get_row(
        db: Session,
        sku: str,
        location: LocationLike,
        now: Optional[datetime] = None,
        sweep: Optional[bool] = None
    ) -> AvailabilityRow:
        """Availability for one sku/location"""
        from .reservation_store import ReservationStore

        loc = as_location(location)
        with storage_errors(db):
            AvailabilityService._sweep_if_enabled(db, now, sweep, sku=sku, location=loc)

            line = StockLedgerService.get_line(db, sku, loc)
            if not line:
                raise StockLineNotFoundError(f"No stock for {sku} at {loc}")

            active = ReservationStore.find_active_by_sku_location(db, sku, loc)
            reserved = sum((to_decimal(r.reserved_volume) for r in active), Decimal("0"))
            next_expiry = min((r.expires_at for r in active), default=None)
            return AvailabilityService.build_row(line, reserved, len(active), next_expiry)
