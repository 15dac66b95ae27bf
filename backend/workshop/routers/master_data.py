# backend/workshop/routers/master_data.py
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from ..core.api import list_meta, ok
from ..core.db import get_db
from ..schemas.master_data import (
    CategoryCreate, CategoryRead, HolidayCreate, HolidayRead, StandardTaskCreate, StandardTaskRead,
    TechnicianCreate, TechnicianRead, TechnicianUpdate,
)
from ..services import master_data_service as svc

technicians = APIRouter(prefix="/technicians", tags=["technicians"])
holidays = APIRouter(prefix="/holidays", tags=["holidays"])
categories = APIRouter(prefix="/categories", tags=["categories"])
standard_tasks = APIRouter(prefix="/standard-tasks", tags=["standard-tasks"])


# ---- Technicians ----
@technicians.get("")
def list_technicians(
    role: Optional[str] = Query(None),
    active_only: bool = Query(True),
    db: Session = Depends(get_db),
):
    items = [TechnicianRead.model_validate(t) for t in svc.list_technicians(db, role=role, active_only=active_only)]
    return ok(items, meta=list_meta(items))


@technicians.post("", status_code=status.HTTP_201_CREATED)
def create_technician(payload: TechnicianCreate, db: Session = Depends(get_db)):
    return ok(TechnicianRead.model_validate(svc.create_technician(db, payload)), status_code=status.HTTP_201_CREATED)


@technicians.patch("/{technician_id}")
def update_technician(payload: TechnicianUpdate, technician_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return ok(TechnicianRead.model_validate(svc.update_technician(db, technician_id, payload)))


# ---- Holidays ----
@holidays.get("")
def list_holidays(year: Optional[int] = Query(None, ge=1900, le=2999), db: Session = Depends(get_db)):
    items = [HolidayRead.model_validate(h) for h in svc.list_holidays(db, year=year)]
    return ok(items, meta=list_meta(items))


@holidays.post("", status_code=status.HTTP_201_CREATED)
def create_holiday(payload: HolidayCreate, db: Session = Depends(get_db)):
    return ok(HolidayRead.model_validate(svc.create_holiday(db, payload)), status_code=status.HTTP_201_CREATED)


@holidays.delete("/{holiday_id}")
def delete_holiday(holiday_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    svc.delete_holiday(db, holiday_id)
    return ok({"deleted": holiday_id})


# ---- Categories ----
@categories.get("")
def list_categories(parent_code: Optional[str] = Query(None), db: Session = Depends(get_db)):
    items = [CategoryRead.model_validate(c) for c in svc.list_categories(db, parent_code=parent_code)]
    return ok(items, meta=list_meta(items))


@categories.post("", status_code=status.HTTP_201_CREATED)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    return ok(CategoryRead.model_validate(svc.create_category(db, payload)), status_code=status.HTTP_201_CREATED)


# ---- Standard tasks ----
@standard_tasks.get("")
def list_standard_tasks(category_code: Optional[str] = Query(None), db: Session = Depends(get_db)):
    items = [StandardTaskRead.model_validate(t) for t in svc.list_standard_tasks(db, category_code=category_code)]
    return ok(items, meta=list_meta(items))


@standard_tasks.post("", status_code=status.HTTP_201_CREATED)
def create_standard_task(payload: StandardTaskCreate, db: Session = Depends(get_db)):
    task = svc.create_standard_task(db, payload)
    return ok(StandardTaskRead.model_validate(task), status_code=status.HTTP_201_CREATED)
