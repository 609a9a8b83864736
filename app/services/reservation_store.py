"""
Reservation Store - persistence and availability-critical queries for reservations

Store methods never commit; they run inside the caller's transaction so a
check and the insert/transition that depends on it commit together.
"""
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Dict, List, Optional, Union
from uuid import UUID
from datetime import datetime
from decimal import Decimal
import logging

from app.core.errors import (
    DuplicateReservationError,
    InvalidTransitionError,
    OverbookError,
    ReservationNotFoundError,
)
from app.models import (
    Reservation,
    ReservationStatus,
    STATUS_TIMESTAMP_FIELDS,
    TERMINAL_STATUSES,
    resolve_now,
)
from .audit_service import record_audit
from .stock_service import StockLedgerService, LocationLike, as_location, to_decimal, to_volume

logger = logging.getLogger(__name__)

ACTIVE = ReservationStatus.ACTIVE.value


def _snapshot(reservation: Reservation) -> dict:
    return {
        "status": reservation.status,
        "proposal_id": reservation.proposal_id,
        "sku": reservation.sku,
        "location": f"{reservation.city},{reservation.state}",
        "reserved_volume": str(reservation.reserved_volume),
    }


class ReservationStore:
    """Reservation persistence"""

    @staticmethod
    def _active_at(sku: str, location: LocationLike) -> list:
        loc = as_location(location)
        return [
            Reservation.sku == sku,
            Reservation.city == loc.city,
            Reservation.state == loc.state,
            Reservation.status == ACTIVE,
        ]

    @staticmethod
    def sum_active_reserved_volume(db: Session, sku: str, location: LocationLike) -> Decimal:
        """Volume currently held by active reservations for one sku/location"""
        total = db.query(func.coalesce(func.sum(Reservation.reserved_volume), 0)).filter(
            *ReservationStore._active_at(sku, location)
        ).scalar()
        return to_decimal(total)

    @staticmethod
    def next_expiry(db: Session, sku: str, location: LocationLike) -> Optional[datetime]:
        return db.query(func.min(Reservation.expires_at)).filter(
            *ReservationStore._active_at(sku, location)
        ).scalar()

    @staticmethod
    def create(
        db: Session,
        proposal_id: str,
        opportunity_id: str,
        sku: str,
        location: LocationLike,
        volume,
        expires_at: datetime,
        now: Optional[datetime] = None,
        representative_id: Optional[str] = None,
        notes: Optional[str] = None,
        actor: Optional[str] = None
    ) -> Reservation:
        """
        Insert an active reservation if the stock line can cover it.

        The stock line row stays locked until the caller's transaction ends,
        so the sum check and the insert are atomic with respect to other
        reservers of the same sku/location.
        """
        loc = as_location(location)
        volume = to_volume(volume)
        now = resolve_now(now)

        line = StockLedgerService.lock_line(db, sku, loc)

        duplicate = db.query(Reservation.id).filter(
            Reservation.proposal_id == proposal_id,
            *ReservationStore._active_at(sku, loc)
        ).first()
        if duplicate:
            raise DuplicateReservationError(
                f"Proposal {proposal_id} already holds an active reservation for {sku} at {loc}"
            )

        total = to_decimal(line.total_volume)
        reserved = ReservationStore.sum_active_reserved_volume(db, sku, loc)
        if reserved + volume > total:
            raise OverbookError(
                f"Cannot reserve {volume} of {sku} at {loc}: "
                f"{total - reserved} available ({reserved} of {total} reserved)"
            )

        reservation = Reservation(
            proposal_id=proposal_id,
            opportunity_id=opportunity_id,
            representative_id=representative_id,
            sku=sku,
            city=loc.city,
            state=loc.state,
            reserved_volume=volume,
            status=ACTIVE,
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
            notes=notes
        )
        db.add(reservation)
        db.flush()

        record_audit(db, "inventory_reservation", reservation.id, "INSERT",
                     after_data=_snapshot(reservation), performed_by=actor, performed_at=now)
        return reservation

    @staticmethod
    def find_by_id(db: Session, reservation_id: UUID) -> Optional[Reservation]:
        return db.query(Reservation).filter(Reservation.id == reservation_id).first()

    @staticmethod
    def find_active_by_sku_location(db: Session, sku: str, location: LocationLike) -> List[Reservation]:
        return db.query(Reservation).filter(
            *ReservationStore._active_at(sku, location)
        ).order_by(Reservation.expires_at).all()

    @staticmethod
    def find_by_proposal(db: Session, proposal_id: str) -> List[Reservation]:
        return db.query(Reservation).filter(
            Reservation.proposal_id == proposal_id
        ).order_by(Reservation.created_at).all()

    @staticmethod
    def find_active_by_proposal(
        db: Session,
        proposal_id: str,
        now: Optional[datetime] = None,
        for_update: bool = False
    ) -> List[Reservation]:
        """Active reservations of a proposal; with `now`, only those not yet past expiry"""
        query = db.query(Reservation).filter(
            Reservation.proposal_id == proposal_id,
            Reservation.status == ACTIVE
        )
        if now is not None:
            query = query.filter(Reservation.expires_at > now)
        if for_update:
            query = query.with_for_update()
        return query.order_by(Reservation.created_at).all()

    @staticmethod
    def list(
        db: Session,
        status: Optional[str] = None,
        representative_id: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Reservation]:
        query = db.query(Reservation)

        if status and status != "all":
            query = query.filter(Reservation.status == status)

        if representative_id:
            query = query.filter(Reservation.representative_id == representative_id)

        if status == ACTIVE:
            query = query.order_by(Reservation.expires_at)
        else:
            query = query.order_by(Reservation.created_at.desc())

        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def get_status_counts(db: Session, representative_id: Optional[str] = None) -> Dict[str, int]:
        query = db.query(Reservation.status, func.count(Reservation.id))
        if representative_id:
            query = query.filter(Reservation.representative_id == representative_id)
        counts = {status.value: 0 for status in ReservationStatus}
        counts.update(dict(query.group_by(Reservation.status).all()))
        return counts

    @staticmethod
    def transition(
        db: Session,
        reservation: Union[Reservation, UUID],
        new_status: Union[ReservationStatus, str],
        now: Optional[datetime] = None,
        actor: Optional[str] = None,
        note: Optional[str] = None
    ) -> Reservation:
        """
        Move an active reservation to a terminal status.
        Transitions are one-way and only leave `active`.
        """
        new_status = ReservationStatus(new_status)
        if new_status not in TERMINAL_STATUSES:
            raise InvalidTransitionError(f"Cannot transition a reservation to {new_status.value}")

        if not isinstance(reservation, Reservation):
            found = ReservationStore.find_by_id(db, reservation)
            if not found:
                raise ReservationNotFoundError(f"Reservation not found: {reservation}")
            reservation = found

        # Re-read under lock; a concurrent sweep or cancel may have won
        db.refresh(reservation, with_for_update=True)

        current_status = reservation.status
        if current_status != ACTIVE:
            raise InvalidTransitionError(
                f"Cannot transition reservation {reservation.id} from {current_status} to {new_status.value}"
            )

        now = resolve_now(now)
        reservation.status = new_status.value
        setattr(reservation, STATUS_TIMESTAMP_FIELDS[new_status], now)
        reservation.updated_at = now
        if note:
            reservation.notes = f"{reservation.notes}\n{note}" if reservation.notes else note

        record_audit(db, "inventory_reservation", reservation.id, "STATUS_CHANGE",
                     before_data={"status": current_status},
                     after_data={"status": new_status.value},
                     performed_by=actor, performed_at=now)
        db.flush()

        logger.info(
            f"Reservation {reservation.id} (proposal {reservation.proposal_id}, {reservation.sku}): "
            f"{current_status} -> {new_status.value}"
        )
        return reservation
