# backend/workshop/services/master_data_service.py
"""Technician directory, holiday calendar, repair categories and standard tasks."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from workshop.domain.constants import HOURS_PLACES
from workshop.domain.errors import NotFound, ValidationError, WorkshopError
from workshop.models import Holiday, RepairCategory, StandardTask, Technician
from workshop.schemas.master_data import (
    CategoryCreate, HolidayCreate, StandardTaskCreate, TechnicianCreate, TechnicianUpdate,
)
from workshop.services import estimation_service

logger = logging.getLogger(__name__)


def _save(db: Session, obj, *, what: str, duplicate_message: Optional[str] = None, **details):
    try:
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj
    except IntegrityError:
        db.rollback()
        if duplicate_message:
            raise ValidationError(duplicate_message, **details)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Saving %s failed", what)
        raise


# ---- Technicians ----
def create_technician(db: Session, data: TechnicianCreate) -> Technician:
    tech = Technician(Name=data.Name.strip(), Role=data.Role, Phone=data.Phone, IsActive=True)
    return _save(db, tech, what="technician")


def get_technician(db: Session, technician_id: int) -> Technician:
    tech = db.get(Technician, technician_id)
    if tech is None:
        raise NotFound("Technician", technician_id)
    return tech


def update_technician(db: Session, technician_id: int, data: TechnicianUpdate) -> Technician:
    tech = get_technician(db, technician_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field in ("Name", "Role", "IsActive"):
            continue
        setattr(tech, field, value)
    return _save(db, tech, what="technician")


def list_technicians(db: Session, *, role: Optional[str] = None, active_only: bool = True) -> List[Technician]:
    query = db.query(Technician)
    if role:
        query = query.filter(Technician.Role == role)
    if active_only:
        query = query.filter(Technician.IsActive == True)  # noqa: E712
    return query.order_by(Technician.Name.asc()).all()


# ---- Holidays ----
def create_holiday(db: Session, data: HolidayCreate) -> Holiday:
    message = f"Holiday already defined for {data.HolidayDate}"
    if db.query(Holiday).filter(Holiday.HolidayDate == data.HolidayDate).first() is not None:
        raise ValidationError(message, HolidayDate=str(data.HolidayDate))
    try:
        h = Holiday(HolidayDate=data.HolidayDate, Name=data.Name.strip())
        db.add(h)
        db.flush()
        # Open estimates spanning the new day move out
        estimation_service.recompute_for_holiday(db, h.HolidayDate)
        db.commit()
        db.refresh(h)
        return h
    except IntegrityError:
        db.rollback()
        raise ValidationError(message, HolidayDate=str(data.HolidayDate))
    except SQLAlchemyError:
        db.rollback()
        logger.exception("create_holiday failed for %s", data.HolidayDate)
        raise


def delete_holiday(db: Session, holiday_id: int) -> None:
    try:
        h = db.get(Holiday, holiday_id)
        if h is None:
            raise NotFound("Holiday", holiday_id)
        freed = h.HolidayDate
        db.delete(h)
        db.flush()
        estimation_service.recompute_for_holiday(db, freed)
        db.commit()
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("delete_holiday failed for %s", holiday_id)
        raise


def list_holidays(db: Session, *, year: Optional[int] = None) -> List[Holiday]:
    query = db.query(Holiday)
    if year is not None:
        query = query.filter(Holiday.HolidayDate >= date(year, 1, 1), Holiday.HolidayDate <= date(year, 12, 31))
    return query.order_by(Holiday.HolidayDate.asc()).all()


# ---- Repair categories ----
def create_category(db: Session, data: CategoryCreate) -> RepairCategory:
    message = f"Category code already exists: {data.Code}"
    if db.query(RepairCategory).filter(RepairCategory.Code == data.Code).first() is not None:
        raise ValidationError(message, Code=data.Code)
    if data.ParentCode:
        parent = db.query(RepairCategory).filter(RepairCategory.Code == data.ParentCode.strip().upper()).first()
        if parent is None:
            raise NotFound("RepairCategory", data.ParentCode)
    cat = RepairCategory(
        Code=data.Code,
        Name=data.Name.strip(),
        ParentCode=data.ParentCode.strip().upper() if data.ParentCode else None,
        IsActive=True,
    )
    return _save(db, cat, what="category", duplicate_message=message, Code=data.Code)


def list_categories(db: Session, *, parent_code: Optional[str] = None) -> List[RepairCategory]:
    query = db.query(RepairCategory).filter(RepairCategory.IsActive == True)  # noqa: E712
    if parent_code is not None:
        query = query.filter(RepairCategory.ParentCode == parent_code.upper())
    return query.order_by(RepairCategory.Code.asc()).all()


# ---- Standard tasks ----
def create_standard_task(db: Session, data: StandardTaskCreate) -> StandardTask:
    code = data.CategoryCode.strip().upper()
    if db.query(RepairCategory).filter(RepairCategory.Code == code).first() is None:
        raise NotFound("RepairCategory", code)
    task = StandardTask(
        CategoryCode=code,
        Item=data.Item.strip(),
        StandardHours=Decimal(data.StandardHours).quantize(HOURS_PLACES, rounding=ROUND_HALF_UP),
    )
    return _save(db, task, what="standard task")


def list_standard_tasks(db: Session, *, category_code: Optional[str] = None) -> List[StandardTask]:
    query = db.query(StandardTask)
    if category_code:
        query = query.filter(StandardTask.CategoryCode == category_code.upper())
    return query.order_by(StandardTask.CategoryCode.asc(), StandardTask.TaskID.asc()).all()
