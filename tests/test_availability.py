from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.errors import StockLineNotFoundError
from app.services import AvailabilityService, ReservationService
from app.services.availability_service import FULLY_AVAILABLE, FULLY_RESERVED, PARTIALLY_RESERVED

from .conftest import NOW, RIO_VERDE, SORRISO


@pytest.mark.parametrize("total,available,band", [
    (Decimal("1000"), Decimal("1000"), FULLY_AVAILABLE),
    (Decimal("1000"), Decimal("400"), PARTIALLY_RESERVED),
    (Decimal("1000"), Decimal("0"), FULLY_RESERVED),
    (Decimal("0"), Decimal("0"), FULLY_AVAILABLE),
])
def test_classify(total, available, band):
    assert AvailabilityService.classify(total, available) == band


def test_rows_for_report(db, make_stock_line):
    make_stock_line(total=1000, product_name="Herbicida X")
    make_stock_line(sku="FUNG-02", total=200, unit="kilograms")
    make_stock_line(total=50, location=RIO_VERDE)

    ReservationService.reserve(db, "P-1", "OP-1", "HERB-01", SORRISO, 600, now=NOW, ttl=timedelta(hours=10))
    ReservationService.reserve(db, "P-2", "OP-2", "HERB-01", SORRISO, 150, now=NOW, ttl=timedelta(hours=5))
    ReservationService.reserve(db, "P-3", "OP-3", "HERB-01", RIO_VERDE, 50, now=NOW)

    rows = {(r.sku, r.location): r for r in AvailabilityService.get_rows(db, now=NOW)}
    assert len(rows) == 3

    sorriso = rows[("HERB-01", SORRISO)]
    assert sorriso.reserved_volume == Decimal("750")
    assert sorriso.available_volume == Decimal("250")
    assert sorriso.active_reservation_count == 2
    assert sorriso.next_expiry == NOW + timedelta(hours=5)
    assert sorriso.band == PARTIALLY_RESERVED
    assert sorriso.product_name == "Herbicida X"

    assert rows[("HERB-01", RIO_VERDE)].band == FULLY_RESERVED
    fungicide = rows[("FUNG-02", SORRISO)]
    assert fungicide.band == FULLY_AVAILABLE
    assert fungicide.next_expiry is None
    assert fungicide.unit == "kilograms"

    for row in rows.values():
        assert row.available_volume + row.reserved_volume == row.total_volume


def test_rows_search(db, make_stock_line):
    make_stock_line(total=10)
    make_stock_line(sku="FUNG-02", total=10)

    assert [r.sku for r in AvailabilityService.get_rows(db, now=NOW, search="FUNG")] == ["FUNG-02"]


def test_read_sweeps_past_due_reservations(db, make_stock_line):
    make_stock_line(total=1000)
    ReservationService.reserve(db, "P-1", "OP-1", "HERB-01", SORRISO, 1000, now=NOW, ttl=timedelta(hours=1))

    stale = AvailabilityService.get_row(db, "HERB-01", SORRISO, now=NOW + timedelta(hours=2), sweep=False)
    assert stale.available_volume == Decimal("0")

    fresh = AvailabilityService.get_row(db, "HERB-01", SORRISO, now=NOW + timedelta(hours=2), sweep=True)
    assert fresh.available_volume == Decimal("1000")
    assert fresh.band == FULLY_AVAILABLE
    assert ReservationService.list_for_proposal(db, "P-1")[0].status == "expired"


def test_available_volume_invariant_over_lifecycle(db, make_stock_line):
    make_stock_line(total=1000)

    def check():
        row = AvailabilityService.get_row(db, "HERB-01", SORRISO, sweep=False)
        assert row.available_volume + row.reserved_volume == row.total_volume
        assert row.available_volume >= 0
        return row

    ReservationService.reserve(db, "P-1", "OP-1", "HERB-01", SORRISO, 300, now=NOW)
    check()
    ReservationService.reserve(db, "P-2", "OP-2", "HERB-01", SORRISO, 200, now=NOW)
    check()
    ReservationService.confirm(db, "P-1", now=NOW + timedelta(hours=1))
    row = check()
    assert row.total_volume == Decimal("700")
    assert row.reserved_volume == Decimal("200")
    ReservationService.cancel(db, "P-2", now=NOW + timedelta(hours=1))
    row = check()
    assert row.available_volume == Decimal("700")


def test_unknown_line(db):
    with pytest.raises(StockLineNotFoundError):
        AvailabilityService.get_row(db, "NOPE", SORRISO, now=NOW)
