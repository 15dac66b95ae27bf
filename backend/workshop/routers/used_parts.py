# backend/workshop/routers/used_parts.py
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from ..core.api import list_meta, ok
from ..core.db import get_db
from ..schemas.inventory import UsedPartEventIn, UsedPartRead
from ..services import used_part_service
from .deps import actor_name

router = APIRouter(prefix="/used-parts", tags=["used-parts"])


@router.get("")
def list_used_parts(
    status_s: Optional[str] = Query(None),
    work_order_id: Optional[int] = Query(None, ge=1),
    open_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    rows = used_part_service.list_used_parts(
        db, status_s=status_s, work_order_id=work_order_id, open_only=open_only, skip=skip, limit=limit,
    )
    items = [UsedPartRead.model_validate(r) for r in rows]
    return ok(items, meta=list_meta(items))


@router.get("/{used_part_id}")
def get_used_part(used_part_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    up = used_part_service.get_used_part(db, used_part_id)
    return ok(UsedPartRead.model_validate(up), meta={"remaining": float(used_part_service.remaining_quantity(up))})


@router.post("/{used_part_id}/events")
def process_used_part(
    payload: UsedPartEventIn,
    used_part_id: int = Path(..., ge=1),
    actor: str = Depends(actor_name),
    db: Session = Depends(get_db),
):
    up = used_part_service.process_used_part(db, used_part_id, payload, actor=actor)
    return ok(UsedPartRead.model_validate(up), meta={"remaining": float(used_part_service.remaining_quantity(up))})
