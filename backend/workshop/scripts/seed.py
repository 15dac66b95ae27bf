"""
Idempotent demo data: technicians, holidays, categories, standard tasks and a
few stock items. Run with `python -m workshop.scripts.seed` from backend/.
"""
import logging
from contextlib import contextmanager
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from workshop.core.db import Base, SessionLocal, engine
from workshop.models import Holiday, RepairCategory, StandardTask, StockItem, Technician
from workshop.schemas.inventory import StockItemCreate
from workshop.services import inventory_service

logger = logging.getLogger(__name__)

# ---------- helpers ----------

@contextmanager
def session_scope():
    """One-off session (rollback on error)."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_one(db, model, **by):
    return db.execute(select(model).filter_by(**by)).scalars().first()


def get_or_create(db, model, unique_by: dict, defaults: dict | None = None):
    """Look up by unique_by, create when absent. The caller commits."""
    inst = get_one(db, model, **unique_by)
    if inst:
        return inst, False
    inst = model(**{**unique_by, **(defaults or {})})
    db.add(inst)
    return inst, True

# ---------- seed data ----------

TECHNICIANS = [
    {"Name": "Somchai K.", "Role": "Technician", "Phone": "081-000-0001"},
    {"Name": "Anan P.",    "Role": "Technician", "Phone": "081-000-0002"},
    {"Name": "Nida S.",    "Role": "Assistant",  "Phone": "081-000-0003"},
]

HOLIDAYS = [
    {"HolidayDate": date(2025, 1, 1),  "Name": "New Year's Day"},
    {"HolidayDate": date(2025, 4, 14), "Name": "Songkran"},
    {"HolidayDate": date(2025, 12, 31), "Name": "New Year's Eve"},
]

CATEGORIES = [
    {"Code": "ENG", "Name": "Engine",     "ParentCode": None},
    {"Code": "BRK", "Name": "Brakes",     "ParentCode": None},
    {"Code": "ELE", "Name": "Electrical", "ParentCode": None},
]

STANDARD_TASKS = [
    {"CategoryCode": "ENG", "Item": "Oil and filter change", "StandardHours": Decimal("1.00")},
    {"CategoryCode": "BRK", "Item": "Front brake pads",       "StandardHours": Decimal("1.50")},
    {"CategoryCode": "ELE", "Item": "Battery replacement",    "StandardHours": Decimal("0.50")},
]

STOCK = [
    StockItemCreate(Code="OIL-10W40", Name="Engine oil 10W-40", Unit="L", UnitPrice=Decimal("180"),
                    OpeningQuantity=Decimal("40"), MinStock=Decimal("10"), MaxStock=Decimal("100")),
    StockItemCreate(Code="FLT-OIL", Name="Oil filter", Unit="pcs", UnitPrice=Decimal("250"),
                    OpeningQuantity=Decimal("12"), MinStock=Decimal("4")),
    StockItemCreate(Code="BRK-PAD-F", Name="Front brake pad set", Unit="set", UnitPrice=Decimal("1200"),
                    OpeningQuantity=Decimal("6"), MinStock=Decimal("2")),
    StockItemCreate(Code="USED-OIL", Name="Used oil (fungible)", Unit="L", IsFungibleUsedItem=True),
]


def run():
    Base.metadata.create_all(bind=engine)

    with session_scope() as db:
        logger.info("Seeding: Technician / Holiday / RepairCategory / StandardTask")
        for t in TECHNICIANS:
            get_or_create(db, Technician, {"Name": t["Name"]}, defaults=t)
        for h in HOLIDAYS:
            get_or_create(db, Holiday, {"HolidayDate": h["HolidayDate"]}, defaults=h)
        for c in CATEGORIES:
            get_or_create(db, RepairCategory, {"Code": c["Code"]}, defaults=c)
        for s in STANDARD_TASKS:
            get_or_create(db, StandardTask, {"CategoryCode": s["CategoryCode"], "Item": s["Item"]}, defaults=s)

    # Stock goes through the ledger so opening balances have a Receipt
    with session_scope() as db:
        logger.info("Seeding: StockItem")
        for item in STOCK:
            if get_one(db, StockItem, Code=item.Code) is None:
                inventory_service.create_stock_item(db, item, actor="seed")

    logger.info("Seed done")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
