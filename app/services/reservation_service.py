"""
Reservation Service - the transactional boundary used by the CRM/admin layers

State machine (per reservation):
    reserve()   -> active
    confirm()   active -> consumed   (stock leaves the ledger)
    sweeper     active -> expired
    cancel()    active -> cancelled
consumed/expired/cancelled are terminal.
"""
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import datetime, timedelta
from decimal import Decimal
import logging

from app.core import settings
from app.core.errors import (
    InvalidReservationError,
    ReservationNotFoundError,
    storage_errors,
)
from app.core.retry import retry_storage
from app.models import Reservation, ReservationStatus, resolve_now
from app.schemas.reservation import ReservationStats
from .expiry_service import ExpirySweeper
from .reservation_store import ReservationStore
from .stock_service import StockLedgerService, LocationLike, as_location, to_decimal, to_volume

logger = logging.getLogger(__name__)

ALERT_ACTIVE = "active"
ALERT_EXPIRING_SOON = "expiring_soon"
ALERT_EXPIRED = "expired"


def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidReservationError(f"{name} must not be empty")
    return str(value).strip()


class ReservationService:
    """Reservation business logic"""

    @staticmethod
    @retry_storage
    def reserve(
        db: Session,
        proposal_id: str,
        opportunity_id: str,
        sku: str,
        location: LocationLike,
        volume,
        representative_id: Optional[str] = None,
        notes: Optional[str] = None,
        actor: Optional[str] = None,
        now: Optional[datetime] = None,
        ttl: Optional[timedelta] = None
    ) -> Reservation:
        """Hold `volume` of sku/location for a proposal until now + TTL"""
        proposal_id = _require(proposal_id, "proposal_id")
        opportunity_id = _require(opportunity_id, "opportunity_id")
        sku = _require(sku, "sku")
        loc = as_location(location)
        volume = to_volume(volume)
        if volume <= 0:
            raise InvalidReservationError(f"Reserved volume must be positive, got {volume}")

        now = resolve_now(now)
        if ttl is None:
            ttl = timedelta(hours=settings.RESERVATION_TTL_HOURS)
        if ttl <= timedelta(0):
            raise InvalidReservationError("Reservation TTL must be positive")

        with storage_errors(db):
            # Lock first, then release anything past due on this line before checking
            StockLedgerService.lock_line(db, sku, loc)
            ExpirySweeper.sweep(db, now=now, sku=sku, location=loc)

            reservation = ReservationStore.create(
                db,
                proposal_id=proposal_id,
                opportunity_id=opportunity_id,
                sku=sku,
                location=loc,
                volume=volume,
                expires_at=now + ttl,
                now=now,
                representative_id=representative_id,
                notes=notes,
                actor=actor or representative_id
            )
            db.commit()
            db.refresh(reservation)

        logger.info(
            f"Reserved {volume} of {sku} at {loc} for proposal {proposal_id} "
            f"until {reservation.expires_at.isoformat()}"
        )
        return reservation

    @staticmethod
    @retry_storage
    def confirm(
        db: Session,
        proposal_id: str,
        actor: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[Reservation]:
        """
        Order was placed: consume every active reservation of the proposal
        and take the volume out of the ledger, all in one transaction.
        """
        proposal_id = _require(proposal_id, "proposal_id")
        now = resolve_now(now)

        with storage_errors(db):
            reservations = ReservationStore.find_active_by_proposal(db, proposal_id, now=now, for_update=True)
            if not reservations:
                raise ReservationNotFoundError(f"No active reservation for proposal {proposal_id}")

            # Stock lines are locked in key order so two confirms never wait on each other
            reservations.sort(key=lambda r: (r.sku, r.city, r.state))
            for reservation in reservations:
                StockLedgerService.consume(
                    db,
                    reservation.sku,
                    reservation.location,
                    reservation.reserved_volume,
                    reference_id=proposal_id,
                    actor=actor,
                    now=now,
                    commit=False
                )
                ReservationStore.transition(db, reservation, ReservationStatus.CONSUMED, now=now, actor=actor)

            db.commit()
            for reservation in reservations:
                db.refresh(reservation)

        logger.info(f"Confirmed {len(reservations)} reservation(s) for proposal {proposal_id}")
        return reservations

    @staticmethod
    @retry_storage
    def cancel(
        db: Session,
        proposal_id: str,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[Reservation]:
        """
        Release the proposal's active reservations. Safe to repeat: once
        nothing is active, returns an empty list instead of raising.
        """
        proposal_id = _require(proposal_id, "proposal_id")
        now = resolve_now(now)

        with storage_errors(db):
            if not ReservationStore.find_by_proposal(db, proposal_id):
                raise ReservationNotFoundError(f"No reservation for proposal {proposal_id}")

            reservations = ReservationStore.find_active_by_proposal(db, proposal_id, for_update=True)
            for reservation in reservations:
                ReservationStore.transition(
                    db, reservation, ReservationStatus.CANCELLED, now=now, actor=actor, note=reason
                )

            db.commit()
            for reservation in reservations:
                db.refresh(reservation)

        if reservations:
            logger.info(f"Cancelled {len(reservations)} reservation(s) for proposal {proposal_id}")
        else:
            logger.info(f"Cancel for proposal {proposal_id}: nothing active")
        return reservations

    @staticmethod
    def reject_proposal(
        db: Session,
        proposal_id: str,
        actor: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[Reservation]:
        """Proposal was rejected: release its stock (no error if it never reserved any)"""
        try:
            return ReservationService.cancel(db, proposal_id, actor=actor, reason="proposal rejected", now=now)
        except ReservationNotFoundError:
            return []

    # ===================== QUERIES =====================

    @staticmethod
    def get_reservation(db: Session, reservation_id: UUID) -> Reservation:
        reservation = ReservationStore.find_by_id(db, reservation_id)
        if not reservation:
            raise ReservationNotFoundError(f"Reservation not found: {reservation_id}")
        return reservation

    @staticmethod
    def list_active(db: Session) -> List[Reservation]:
        return ReservationStore.list(db, status=ReservationStatus.ACTIVE.value)

    @staticmethod
    def list_all(
        db: Session,
        status: Optional[str] = None,
        representative_id: Optional[str] = None
    ) -> List[Reservation]:
        return ReservationStore.list(db, status=status, representative_id=representative_id)

    @staticmethod
    def list_for_proposal(db: Session, proposal_id: str) -> List[Reservation]:
        return ReservationStore.find_by_proposal(db, proposal_id)

    @staticmethod
    def list_for_representative(db: Session, representative_id: str) -> List[Reservation]:
        """Active reservations of one representative, soonest expiry first"""
        return ReservationStore.list(
            db, status=ReservationStatus.ACTIVE.value, representative_id=representative_id
        )

    @staticmethod
    def list_expiring(
        db: Session,
        within_hours: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> List[Reservation]:
        """Active reservations that expire within the window but have not yet"""
        now = resolve_now(now)
        window = timedelta(hours=within_hours if within_hours is not None else settings.EXPIRING_SOON_HOURS)
        return [
            r for r in ReservationService.list_active(db)
            if now < r.expires_at <= now + window
        ]

    @staticmethod
    def stats_summary(
        db: Session,
        representative_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ReservationStats:
        """Counts by status, held volume and conversion rate"""
        now = resolve_now(now)
        with storage_errors(db):
            counts = ReservationStore.get_status_counts(db, representative_id)
            active = ReservationStore.list(
                db, status=ReservationStatus.ACTIVE.value, representative_id=representative_id
            )

        soon = now + timedelta(hours=settings.EXPIRING_SOON_HOURS)
        total_reserved = sum((to_decimal(r.reserved_volume) for r in active), Decimal("0"))
        expiring_soon = sum(1 for r in active if now < r.expires_at <= soon)

        consumed = counts[ReservationStatus.CONSUMED.value]
        expired = counts[ReservationStatus.EXPIRED.value]
        conversion_rate = (consumed / (consumed + expired) * 100) if (consumed + expired) else 0.0

        return ReservationStats(
            active_count=counts[ReservationStatus.ACTIVE.value],
            consumed_count=consumed,
            expired_count=expired,
            cancelled_count=counts[ReservationStatus.CANCELLED.value],
            expiring_soon_count=expiring_soon,
            total_reserved_volume=total_reserved,
            conversion_rate=round(conversion_rate, 1)
        )

    @staticmethod
    def expiry_alert(reservation: Reservation, now: Optional[datetime] = None) -> Optional[str]:
        """Urgency shown next to a proposal; None once consumed or cancelled"""
        if reservation.status in (ReservationStatus.CONSUMED.value, ReservationStatus.CANCELLED.value):
            return None
        now = resolve_now(now)
        remaining = reservation.expires_at - now
        if reservation.status == ReservationStatus.EXPIRED.value or remaining <= timedelta(0):
            return ALERT_EXPIRED
        if remaining <= timedelta(hours=settings.EXPIRING_SOON_HOURS):
            return ALERT_EXPIRING_SOON
        return ALERT_ACTIVE
