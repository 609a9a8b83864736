"""
Stock Ledger Service - source of truth for volume per SKU/location
"""
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import List, Optional, Tuple, Union
from datetime import datetime
from decimal import Decimal, InvalidOperation
import logging

from app.core.errors import (
    InsufficientStockError,
    InvalidReservationError,
    OverbookError,
    StockLineNotFoundError,
    storage_errors,
)
from app.core.retry import retry_storage
from app.models import StockLine, StockMovement, MovementType, VolumeUnit, resolve_now
from app.schemas.stock import Location
from .audit_service import record_audit

logger = logging.getLogger(__name__)

LocationLike = Union[Location, Tuple[str, str]]

VOLUME_QUANTUM = Decimal("0.001")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_volume(value, name: str = "volume") -> Decimal:
    """Volume as a finite Decimal with at most 3 decimal places (the column scale)"""
    try:
        volume = to_decimal(value)
    except InvalidOperation as e:
        raise InvalidReservationError(f"{name} is not a number: {value!r}") from e
    if not volume.is_finite():
        raise InvalidReservationError(f"{name} must be a finite number, got {value!r}")
    try:
        quantized = volume.quantize(VOLUME_QUANTUM)
    except InvalidOperation as e:
        raise InvalidReservationError(f"{name} is out of range: {value!r}") from e
    if quantized != volume:
        raise InvalidReservationError(f"{name} allows at most 3 decimal places, got {value!r}")
    return quantized


def as_location(location: LocationLike) -> Location:
    if isinstance(location, str):
        try:
            return Location.parse(location)
        except ValueError as e:
            raise InvalidReservationError(str(e)) from e
    city, state = location
    if not city or not str(city).strip() or not state or not str(state).strip():
        raise InvalidReservationError("Location requires a non-empty city and state")
    return Location(str(city).strip(), str(state).strip())


class StockLedgerService:
    """Stock ledger business logic"""

    @staticmethod
    def _line_query(db: Session, sku: str, location: LocationLike):
        loc = as_location(location)
        return db.query(StockLine).filter(
            StockLine.sku == sku,
            StockLine.city == loc.city,
            StockLine.state == loc.state
        )

    @staticmethod
    def get_line(db: Session, sku: str, location: LocationLike) -> Optional[StockLine]:
        """Get stock line by sku + location"""
        return StockLedgerService._line_query(db, sku, location).first()

    @staticmethod
    def lock_line(db: Session, sku: str, location: LocationLike) -> StockLine:
        """
        Get the stock line and hold its row lock until the transaction ends.
        Every writer of reservations or totals for this sku/location goes
        through here first.
        """
        line = StockLedgerService._line_query(db, sku, location).with_for_update().first()
        if not line:
            raise StockLineNotFoundError(f"No stock for {sku} at {as_location(location)}")
        return line

    @staticmethod
    def get_total(db: Session, sku: str, location: LocationLike) -> Decimal:
        line = StockLedgerService.get_line(db, sku, location)
        if not line:
            raise StockLineNotFoundError(f"No stock for {sku} at {as_location(location)}")
        return to_decimal(line.total_volume)

    @staticmethod
    def list_lines(db: Session, search: Optional[str] = None) -> List[StockLine]:
        query = db.query(StockLine)
        if search:
            search_term = f"%{search}%"
            query = query.filter(
                or_(
                    StockLine.sku.ilike(search_term),
                    StockLine.product_name.ilike(search_term),
                    StockLine.city.ilike(search_term)
                )
            )
        return query.order_by(StockLine.sku, StockLine.state, StockLine.city).all()

    @staticmethod
    @retry_storage
    def upsert_line(
        db: Session,
        sku: str,
        location: LocationLike,
        total_volume,
        unit: Union[VolumeUnit, str] = VolumeUnit.LITERS,
        product_name: Optional[str] = None,
        actor: Optional[str] = None,
        note: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> StockLine:
        """
        Create or set the total for a stock line (inventory management entry point).
        The new total may not drop below the volume held by active reservations.
        """
        from .reservation_store import ReservationStore

        if not sku or not sku.strip():
            raise InvalidReservationError("sku must not be empty")
        total = to_volume(total_volume, "total_volume")
        if total < 0:
            raise InvalidReservationError("total_volume cannot be negative")

        loc = as_location(location)
        unit_value = VolumeUnit(unit).value
        now = resolve_now(now)

        with storage_errors(db):
            line = StockLedgerService._line_query(db, sku, loc).with_for_update().first()

            if line is None:
                line = StockLine(
                    sku=sku,
                    city=loc.city,
                    state=loc.state,
                    product_name=product_name,
                    total_volume=total,
                    unit=unit_value
                )
                db.add(line)
                db.flush()
                StockLedgerService._add_movement(
                    db, sku, loc, MovementType.IN, total, "INITIAL", None, note, actor, now
                )
                record_audit(db, "stock_line", line.id, "INSERT",
                             after_data={"total_volume": str(total)}, performed_by=actor)
            else:
                reserved = ReservationStore.sum_active_reserved_volume(db, sku, loc)
                if total < reserved:
                    raise OverbookError(
                        f"Cannot set {sku} at {loc} to {total}: {reserved} is held by active reservations"
                    )
                before = to_decimal(line.total_volume)
                line.total_volume = total
                line.unit = unit_value
                if product_name is not None:
                    line.product_name = product_name
                if total != before:
                    StockLedgerService._add_movement(
                        db, sku, loc, MovementType.ADJUST, total - before, "ADJUSTMENT", None, note, actor, now
                    )
                    record_audit(db, "stock_line", line.id, "ADJUST",
                                 before_data={"total_volume": str(before)},
                                 after_data={"total_volume": str(total)},
                                 performed_by=actor)

            db.commit()
            db.refresh(line)

        logger.info(f"Stock line {sku} at {loc} set to {total} {unit_value}")
        return line

    @staticmethod
    def consume(
        db: Session,
        sku: str,
        location: LocationLike,
        volume,
        reference_id: Optional[str] = None,
        actor: Optional[str] = None,
        now: Optional[datetime] = None,
        commit: bool = True
    ) -> StockLine:
        """Decrement total volume when a reservation turns into an actual sale"""
        volume = to_volume(volume)
        if volume <= 0:
            raise InvalidReservationError("Consumed volume must be positive")
        loc = as_location(location)

        line = StockLedgerService.lock_line(db, sku, loc)
        total = to_decimal(line.total_volume)
        if volume > total:
            # Reservations should have made this impossible
            logger.critical(
                f"Ledger/reservation desync: consuming {volume} of {sku} at {loc} "
                f"but only {total} on hand (reference={reference_id})"
            )
            raise InsufficientStockError(
                f"Cannot consume {volume} of {sku} at {loc}: only {total} on hand"
            )

        line.total_volume = total - volume
        StockLedgerService._add_movement(
            db, sku, loc, MovementType.OUT, -volume, "PROPOSAL", reference_id, None, actor, resolve_now(now)
        )

        if commit:
            db.commit()
            db.refresh(line)
        else:
            db.flush()
        return line

    @staticmethod
    def _add_movement(db, sku, loc, movement_type, quantity, reference_type, reference_id, note, actor, now):
        movement = StockMovement(
            sku=sku,
            city=loc.city,
            state=loc.state,
            movement_type=movement_type.value,
            quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            note=note,
            created_at=now,
            created_by=actor
        )
        db.add(movement)
        return movement

    @staticmethod
    def get_recent_movements(
        db: Session,
        sku: Optional[str] = None,
        movement_type: Optional[str] = None,
        limit: int = 50
    ) -> List[StockMovement]:
        """Get recent stock movements"""
        query = db.query(StockMovement)

        if sku:
            query = query.filter(StockMovement.sku == sku)

        if movement_type:
            query = query.filter(StockMovement.movement_type == movement_type)

        return query.order_by(StockMovement.created_at.desc()).limit(limit).all()
