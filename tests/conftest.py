"""
Shared fixtures: a file-backed SQLite database per test, a fixed clock
and a stock line factory.
"""
import os

# Configure before anything imports app.core
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("STORAGE_RETRY_WAIT_SECONDS", "0")

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401  (registers tables on Base.metadata)
from app.core import Base
from app.core.database import build_engine
from app.schemas.stock import Location
from app.services import StockLedgerService

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
SORRISO = Location("Sorriso", "MT")
RIO_VERDE = Location("Rio Verde", "GO")


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'reservas.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_stock_line(db):
    def _make(sku="HERB-01", location=SORRISO, total=1000, unit="liters", product_name=None):
        return StockLedgerService.upsert_line(
            db, sku, location, total, unit=unit, product_name=product_name, actor="admin", now=NOW
        )
    return _make
