"""
Inventory API - stock lines, ledger movements and availability report
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core import get_db
from app.schemas.stock import (
    AvailabilityRow,
    Location,
    StockLineResponse,
    StockLineUpsert,
    StockMovementResponse,
)
from app.services import AvailabilityService, StockLedgerService

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("/lines", response_model=List[StockLineResponse])
def list_stock_lines(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    return StockLedgerService.list_lines(db, search)


@router.put("/lines", response_model=StockLineResponse)
def upsert_stock_line(
    data: StockLineUpsert,
    actor: Optional[str] = Query(None, description="Who is changing the total"),
    db: Session = Depends(get_db)
):
    """
    Create a stock line or set its total volume.
    Rejected with 409 if the new total is below the actively reserved volume.
    """
    return StockLedgerService.upsert_line(
        db,
        sku=data.sku,
        location=Location(data.city, data.state),
        total_volume=data.total_volume,
        unit=data.unit,
        product_name=data.product_name,
        actor=actor,
        note=data.note
    )


@router.get("/movements", response_model=List[StockMovementResponse])
def list_movements(
    sku: Optional[str] = Query(None),
    movement_type: Optional[str] = Query(None, description="IN, OUT or ADJUST"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return StockLedgerService.get_recent_movements(db, sku, movement_type, limit)


@router.get("/availability", response_model=List[AvailabilityRow])
def get_availability_report(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Inventory reservations report: total / reserved / available per sku and location"""
    return AvailabilityService.get_rows(db, search=search)


@router.get("/availability/{sku}", response_model=AvailabilityRow)
def get_availability(
    sku: str,
    city: str = Query(..., min_length=1),
    state: str = Query(..., min_length=1),
    db: Session = Depends(get_db)
):
    return AvailabilityService.get_row(db, sku, Location(city, state))
