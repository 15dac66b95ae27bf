# backend/workshop/routers/requisitions.py
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from ..core.api import list_meta, ok
from ..core.db import get_db
from ..domain.confirm import Confirm
from ..domain.statuses import RequestTypeLiteral, RequisitionStatusLiteral
from ..schemas.requisition import (
    RequisitionCreate, RequisitionRead, RequisitionTransitionIn, RequisitionUpdate,
)
from ..services import inventory_service, requisition_service
from .deps import actor_name, header_confirm

router = APIRouter(prefix="/requisitions", tags=["requisitions"])


def _read(pr):
    return {
        **RequisitionRead.model_validate(pr).model_dump(mode="json"),
        "totals": requisition_service.compute_totals(pr).model_dump(mode="json"),
    }


@router.get("")
def list_requisitions(
    status_s: Optional[RequisitionStatusLiteral] = Query(None),
    request_type: Optional[RequestTypeLiteral] = Query(None),
    q: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    sort: str = Query("-RequisitionID"),
    db: Session = Depends(get_db),
):
    rows = requisition_service.list_requisitions(
        db, status_s=status_s, request_type=request_type, q=q, skip=skip, limit=limit, sort=sort,
    )
    items = [_read(r) for r in rows]
    return ok(items, meta=list_meta(items))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_requisition(payload: RequisitionCreate, db: Session = Depends(get_db)):
    pr = requisition_service.create_requisition(db, payload)
    return ok(_read(pr), status_code=status.HTTP_201_CREATED)


@router.get("/{requisition_id}")
def get_requisition(requisition_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return ok(_read(requisition_service.get_requisition(db, requisition_id)))


@router.patch("/{requisition_id}")
def update_requisition(payload: RequisitionUpdate, requisition_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return ok(_read(requisition_service.update_requisition(db, requisition_id, payload)))


@router.post("/{requisition_id}/transition")
def transition(
    payload: RequisitionTransitionIn,
    requisition_id: int = Path(..., ge=1),
    confirm: Confirm = Depends(header_confirm),
    actor: str = Depends(actor_name),
    db: Session = Depends(get_db),
):
    pr, report = requisition_service.transition_with_report(
        db,
        requisition_id,
        payload.Status_s,
        confirm=confirm,
        approved_by=payload.ApprovedBy,
        actor=actor,
    )
    meta = {"receipts": report.model_dump()} if report is not None else None
    return ok(_read(pr), meta=meta)


@router.post("/{requisition_id}/post-receipt")
def post_receipt(
    requisition_id: int = Path(..., ge=1),
    actor: str = Depends(actor_name),
    db: Session = Depends(get_db),
):
    return ok(inventory_service.post_receipt(db, requisition_id, actor=actor))


@router.delete("/{requisition_id}")
def delete_requisition(
    requisition_id: int = Path(..., ge=1),
    confirm: Confirm = Depends(header_confirm),
    db: Session = Depends(get_db),
):
    requisition_service.delete_requisition(db, requisition_id, confirm=confirm)
    return ok({"deleted": requisition_id})
