"""
Expiry Sweeper - releases stale holds by moving them to `expired`

Expired volume needs no bookkeeping: availability only counts `active`
reservations, so the status flip is the release.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Callable, Optional
from datetime import datetime
import logging

from app.models import Reservation, ReservationStatus, SweepRun, SweepStatus, resolve_now, utcnow
from .reservation_store import ReservationStore
from .stock_service import LocationLike, as_location

logger = logging.getLogger(__name__)

SWEEPER_ACTOR = "system:expiry-sweeper"


class ExpirySweeper:

    @staticmethod
    def sweep(
        db: Session,
        now: Optional[datetime] = None,
        sku: Optional[str] = None,
        location: Optional[LocationLike] = None
    ) -> int:
        """
        Expire every active reservation whose expires_at has passed.
        Optionally scoped to one sku/location. Runs in the caller's
        transaction; returns the number of reservations expired.
        """
        now = resolve_now(now)
        query = db.query(Reservation).filter(
            Reservation.status == ReservationStatus.ACTIVE.value,
            Reservation.expires_at <= now
        )
        if sku:
            query = query.filter(Reservation.sku == sku)
        if location:
            loc = as_location(location)
            query = query.filter(Reservation.city == loc.city, Reservation.state == loc.state)

        # Rows locked by a concurrent confirm/cancel are left for the next tick
        due = query.order_by(Reservation.expires_at).with_for_update(skip_locked=True).all()

        for reservation in due:
            ReservationStore.transition(
                db, reservation, ReservationStatus.EXPIRED, now=now, actor=SWEEPER_ACTOR
            )

        if due:
            logger.info(f"Expired {len(due)} reservation(s) as of {now.isoformat()}")
        return len(due)

    @staticmethod
    def run(session_factory: Optional[Callable[[], Session]] = None, now: Optional[datetime] = None) -> SweepRun:
        """
        Scheduled entry point: sweep everything in its own session and
        record a SweepRun. Failures are logged and left for the next tick.
        """
        if session_factory is None:
            from app.core.database import SessionLocal
            session_factory = SessionLocal

        started_at = utcnow()
        db = session_factory()
        try:
            try:
                expired = ExpirySweeper.sweep(db, now=now)
                run = SweepRun(
                    started_at=started_at,
                    completed_at=utcnow(),
                    status=SweepStatus.SUCCESS.value,
                    expired_count=expired
                )
                db.add(run)
                db.commit()
                db.refresh(run)
                logger.info(f"Expiry sweep completed: expired={expired}")
                return run
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Expiry sweep failed, will retry next tick: {e}")
                run = SweepRun(
                    started_at=started_at,
                    completed_at=utcnow(),
                    status=SweepStatus.FAILED.value,
                    expired_count=0,
                    error_message=str(e)[:500]
                )
                try:
                    db.add(run)
                    db.commit()
                    db.refresh(run)
                except SQLAlchemyError as log_error:
                    db.rollback()
                    logger.error(f"Could not record failed sweep: {log_error}")
                return run
        finally:
            db.close()

    @staticmethod
    def get_latest_run(db: Session) -> Optional[SweepRun]:
        return db.query(SweepRun).order_by(SweepRun.started_at.desc()).first()
