"""
Reservations API - reserve / confirm / cancel and reservation reports
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import datetime, timedelta, timezone

from app.core import get_db
from app.core.database import get_session_factory
from app.schemas.reservation import (
    ActorRequest,
    ReservationResponse,
    ReservationStats,
    ReserveRequest,
    SweepResult,
    SweepRunResponse,
)
from app.schemas.stock import Location
from app.services import ExpirySweeper, ReservationService

router = APIRouter(tags=["Reservations"])


@router.post("/reservations", response_model=ReservationResponse, status_code=201)
def create_reservation(request: ReserveRequest, db: Session = Depends(get_db)):
    ttl = timedelta(hours=request.ttl_hours) if request.ttl_hours else None
    return ReservationService.reserve(
        db,
        proposal_id=request.proposal_id,
        opportunity_id=request.opportunity_id,
        sku=request.sku,
        location=Location(request.city, request.state),
        volume=request.volume,
        representative_id=request.representative_id,
        notes=request.notes,
        ttl=ttl
    )


@router.get("/reservations", response_model=List[ReservationResponse])
def list_reservations(
    status: Optional[str] = Query(None, description="active, consumed, expired, cancelled or all"),
    representative_id: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    return ReservationService.list_all(db, status=status, representative_id=representative_id)


@router.get("/reservations/active", response_model=List[ReservationResponse])
def list_active_reservations(
    representative_id: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    if representative_id:
        return ReservationService.list_for_representative(db, representative_id)
    return ReservationService.list_active(db)


@router.get("/reservations/expiring", response_model=List[ReservationResponse])
def list_expiring_reservations(
    hours: Optional[float] = Query(None, gt=0, description="Window in hours (default 24)"),
    db: Session = Depends(get_db)
):
    return ReservationService.list_expiring(db, within_hours=hours)


@router.get("/reservations/stats", response_model=ReservationStats)
def reservation_stats(
    representative_id: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    return ReservationService.stats_summary(db, representative_id=representative_id)


@router.post("/reservations/expire", response_model=SweepResult)
def expire_reservations(session_factory=Depends(get_session_factory)):
    """Run the expiry sweeper now (same job the scheduler runs)"""
    run = ExpirySweeper.run(session_factory)
    if run.status != "success":
        raise HTTPException(status_code=503, detail=run.error_message or "Sweep failed")
    return SweepResult(
        success=True,
        expired_count=run.expired_count,
        timestamp=datetime.now(timezone.utc)
    )


@router.get("/reservations/sweeps/latest", response_model=Optional[SweepRunResponse])
def latest_sweep(db: Session = Depends(get_db)):
    return ExpirySweeper.get_latest_run(db)


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
def get_reservation(reservation_id: UUID, db: Session = Depends(get_db)):
    return ReservationService.get_reservation(db, reservation_id)


# ===================== PROPOSALS =====================

@router.get("/proposals/{proposal_id}/reservations", response_model=List[ReservationResponse])
def list_proposal_reservations(proposal_id: str, db: Session = Depends(get_db)):
    return ReservationService.list_for_proposal(db, proposal_id)


@router.post("/proposals/{proposal_id}/confirm", response_model=List[ReservationResponse])
def confirm_proposal(
    proposal_id: str,
    request: Optional[ActorRequest] = None,
    db: Session = Depends(get_db)
):
    """Order placed: consume the proposal's reservations and take the stock out"""
    actor = request.actor if request else None
    return ReservationService.confirm(db, proposal_id, actor=actor)


@router.post("/proposals/{proposal_id}/cancel", response_model=List[ReservationResponse])
def cancel_proposal_reservations(
    proposal_id: str,
    request: Optional[ActorRequest] = None,
    db: Session = Depends(get_db)
):
    """Release the proposal's reservations; repeating the call is harmless"""
    actor = request.actor if request else None
    reason = request.reason if request else None
    return ReservationService.cancel(db, proposal_id, actor=actor, reason=reason)


@router.post("/proposals/{proposal_id}/reject", response_model=List[ReservationResponse])
def reject_proposal(
    proposal_id: str,
    request: Optional[ActorRequest] = None,
    db: Session = Depends(get_db)
):
    actor = request.actor if request else None
    return ReservationService.reject_proposal(db, proposal_id, actor=actor)
