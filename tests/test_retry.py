from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.errors import OverbookError, StorageUnavailableError, storage_errors
from app.core.retry import retry_storage
from app.services import ReservationService, ReservationStore

from .conftest import NOW, SORRISO


def _locked():
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


def test_storage_errors_translates_transient_failures():
    db = MagicMock()

    with pytest.raises(StorageUnavailableError) as exc_info:
        with storage_errors(db):
            raise _locked()

    assert isinstance(exc_info.value.__cause__, OperationalError)
    db.rollback.assert_called_once()


def test_storage_errors_passes_other_errors_through():
    db = MagicMock()

    with pytest.raises(IntegrityError):
        with storage_errors(db):
            raise IntegrityError("INSERT", {}, Exception("unique violation"))
    with pytest.raises(OverbookError):
        with storage_errors(db):
            raise OverbookError("no stock")

    assert db.rollback.call_count == 2


def test_retry_storage_retries_once():
    calls = []

    @retry_storage(attempts=1, wait_seconds=0)
    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise StorageUnavailableError("database is locked")
        return "done"

    assert flaky() == "done"
    assert len(calls) == 2


def test_retry_storage_gives_up():
    calls = []

    @retry_storage(attempts=1, wait_seconds=0)
    def down():
        calls.append(1)
        raise StorageUnavailableError("connection refused")

    with pytest.raises(StorageUnavailableError):
        down()
    assert len(calls) == 2


def test_business_errors_are_not_retried():
    calls = []

    @retry_storage(attempts=3, wait_seconds=0)
    def overbooked():
        calls.append(1)
        raise OverbookError("no stock")

    with pytest.raises(OverbookError):
        overbooked()
    assert len(calls) == 1


def test_reserve_survives_one_transient_failure(db, make_stock_line, monkeypatch):
    make_stock_line(total=1000)
    original_create = ReservationStore.create
    calls = []

    def create_once_locked(*args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise _locked()
        return original_create(*args, **kwargs)

    monkeypatch.setattr(ReservationStore, "create", staticmethod(create_once_locked))

    reservation = ReservationService.reserve(db, "P1", "OP1", "HERB-01", SORRISO, 600, now=NOW)

    assert len(calls) == 2
    assert reservation.reserved_volume == Decimal("600")
    assert len(ReservationService.list_for_proposal(db, "P1")) == 1
