import os

# The app reads its settings at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("AUTO_CREATE_SCHEMA", "0")

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from workshop.core.db import Base, get_db
from workshop.main import app
import workshop.models  # noqa: F401
from workshop.models import Technician
from workshop.schemas.inventory import StockItemCreate
from workshop.schemas.workorder import PartLineIn, WorkOrderCreate
from workshop.services import inventory_service, workorder_service

# Monday
CREATED_AT = datetime(2025, 3, 3, 9, 30)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def technician(db):
    tech = Technician(Name="Somchai K.", Role="Technician", IsActive=True)
    db.add(tech)
    db.commit()
    db.refresh(tech)
    return tech


@pytest.fixture
def oil(db):
    return inventory_service.create_stock_item(
        db,
        StockItemCreate(
            Code="OIL-10W40", Name="Engine oil 10W-40", Unit="L",
            UnitPrice=Decimal("180"), OpeningQuantity=Decimal("40"), MinStock=Decimal("10"),
        ),
    )


@pytest.fixture
def filter_item(db):
    return inventory_service.create_stock_item(
        db,
        StockItemCreate(
            Code="FLT-OIL", Name="Oil filter", Unit="pcs",
            UnitPrice=Decimal("250"), OpeningQuantity=Decimal("12"), MinStock=Decimal("4"),
        ),
    )


@pytest.fixture
def used_oil(db):
    return inventory_service.create_stock_item(
        db,
        StockItemCreate(Code="USED-OIL", Name="Used oil", Unit="L", IsFungibleUsedItem=True),
    )


@pytest.fixture
def make_workorder(db):
    def _make(*, parts=(), technician_id=None, hours=Decimal("2"), now=CREATED_AT, **fields):
        data = WorkOrderCreate(
            LicensePlate=fields.pop("LicensePlate", "1AB-2345"),
            ProblemDescription=fields.pop("ProblemDescription", "Engine noise"),
            TechnicianID=technician_id,
            parts=[p if isinstance(p, PartLineIn) else PartLineIn(**p) for p in parts],
            EstimatedHours=hours,
            **fields,
        )
        return workorder_service.create_workorder(db, data, now=now)

    return _make


@pytest.fixture
def started_workorder(db, make_workorder, technician, oil, filter_item):
    """In-progress order with two oil lines (4 L + 1 L) and one filter."""
    wo = make_workorder(
        technician_id=technician.TechnicianID,
        parts=[
            {"StockItemID": oil.StockItemID, "Name": "Engine oil", "Quantity": "4", "Unit": "L", "UnitPrice": "180"},
            {"StockItemID": filter_item.StockItemID, "Name": "Oil filter", "Quantity": "1", "Unit": "pcs",
             "UnitPrice": "250"},
            {"StockItemID": oil.StockItemID, "Name": "Engine oil", "Quantity": "1", "Unit": "L", "UnitPrice": "180"},
        ],
    )
    return workorder_service.transition(db, wo.WorkOrderID, "InProgress")
